"""
Data models for the annotation documentation graph.

이 모듈은 LuaCATS 주석 파싱 결과(태그, 주석 블록, 선언)와
문서 그래프(엔티티, DocModel), 진단 정보를 위한 데이터 모델을 제공합니다.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Tuple, Iterator, Union
from enum import Enum


class TagKind(Enum):
    """주석 태그 종류"""
    META = "meta"
    CLASS = "class"
    FIELD = "field"
    PARAM = "param"
    RETURN = "return"
    TYPE = "type"
    ALIAS = "alias"
    ENUM = "enum"
    NODISCARD = "nodiscard"
    VARARG = "vararg"
    GENERIC = "generic"
    OVERLOAD = "overload"
    DEPRECATED = "deprecated"
    UNKNOWN = "unknown"


class DeclarationKind(Enum):
    """주석 블록 뒤에 오는 코드 선언 종류"""
    MODULE_TABLE = "module_table"
    FIELD_ASSIGNMENT = "field_assignment"
    FUNCTION_DEF = "function_def"
    LOCAL_VAR = "local_var"
    GLOBAL_VAR = "global_var"


class Severity(Enum):
    """진단 심각도"""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Param:
    """함수 매개변수"""
    name: str
    type: Optional[str] = None
    optional: bool = False
    description: str = ""


@dataclass
class Return:
    """함수 반환값"""
    type: str
    name: Optional[str] = None
    description: str = ""


@dataclass
class FunctionSignature:
    """함수 호출 시그니처 (overload 포함)"""
    params: List[Param] = field(default_factory=list)
    returns: List[Return] = field(default_factory=list)


@dataclass
class Tag:
    """주석 블록 안의 `@name ...` 태그 하나"""
    kind: TagKind
    word: str
    raw: str = ""
    name: Optional[str] = None
    type: Optional[str] = None
    optional: bool = False
    description: str = ""
    leading: str = ""
    visibility: Optional[str] = None
    parents: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    values: List[Tuple[str, str]] = field(default_factory=list)
    signature: Optional[FunctionSignature] = None
    error: Optional[str] = None
    block_index: int = 0
    line: int = 0


@dataclass
class CommentBlock:
    """선언 앞의 연속된 `---` 주석 줄"""
    tags: List[Tag] = field(default_factory=list)
    description: str = ""
    file_path: str = ""
    line_number: int = 0
    index: int = 0

    def first(self, kind: TagKind) -> Optional[Tag]:
        for tag in self.tags:
            if tag.kind is kind:
                return tag
        return None

    def tags_of(self, kind: TagKind) -> List[Tag]:
        return [tag for tag in self.tags if tag.kind is kind]

    def has(self, *kinds: TagKind) -> bool:
        return any(tag.kind in kinds for tag in self.tags)


@dataclass
class TableMember:
    """테이블 리터럴의 `key = value` 항목"""
    name: str
    value: str


@dataclass
class Declaration:
    """
    주석 블록 바로 뒤의 코드 선언

    kind로 구분되는 tagged variant이며 바인딩 시점에 한 번만 결정됩니다.
    """
    kind: DeclarationKind
    path: str
    value: Optional[str] = None
    members: List[TableMember] = field(default_factory=list)
    params: List[str] = field(default_factory=list)
    is_method: bool = False
    is_local: bool = False
    line_number: int = 0

    @property
    def owner_path(self) -> Optional[str]:
        """`a.b:c` / `a.b.c` 에서 `a.b`"""
        if self.is_method:
            return self.path.rsplit(":", 1)[0]
        if "." in self.path:
            return self.path.rsplit(".", 1)[0]
        return None

    @property
    def short_name(self) -> str:
        if self.is_method:
            return self.path.rsplit(":", 1)[1]
        return self.path.rsplit(".", 1)[-1]


@dataclass
class FieldEntity:
    """클래스 필드"""
    owner: str
    name: str
    type: str
    description: str = ""
    value: Optional[str] = None
    visibility: Optional[str] = None
    deprecated: bool = False
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "field"

    @property
    def full_name(self) -> str:
        return f"{self.owner}.{self.name}"


@dataclass
class FunctionEntity:
    """함수 / 메서드 (overload 포함)"""
    name: str
    owner: Optional[str] = None
    params: List[Param] = field(default_factory=list)
    returns: List[Return] = field(default_factory=list)
    overloads: List[FunctionSignature] = field(default_factory=list)
    nodiscard: bool = False
    description: str = ""
    generics: List[str] = field(default_factory=list)
    deprecated: bool = False
    is_method: bool = False
    undeclared_params: List[str] = field(default_factory=list)
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "function"

    @property
    def full_name(self) -> str:
        if self.owner is None:
            return self.name
        separator = ":" if self.is_method else "."
        return f"{self.owner}{separator}{self.name}"

    def signature(self) -> FunctionSignature:
        return FunctionSignature(params=list(self.params), returns=list(self.returns))


@dataclass
class ClassEntity:
    """클래스 (또는 @class 없이 선언된 모듈 테이블)"""
    name: str
    fields: List[FieldEntity] = field(default_factory=list)
    methods: List[FunctionEntity] = field(default_factory=list)
    description: str = ""
    parents: List[str] = field(default_factory=list)
    deprecated: bool = False
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "class"

    def find_method(self, name: str) -> Optional[FunctionEntity]:
        for method in self.methods:
            if method.name == name:
                return method
        return None


@dataclass
class AliasEntity:
    """타입 별칭"""
    name: str
    type: Optional[str] = None
    description: str = ""
    values: List[Tuple[str, str]] = field(default_factory=list)
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "alias"


@dataclass
class EnumMember:
    """열거형 멤버 (값은 리터럴 원문)"""
    name: str
    value: str


@dataclass
class EnumEntity:
    """열거형"""
    name: str
    members: List[EnumMember] = field(default_factory=list)
    description: str = ""
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "enum"


@dataclass
class GlobalEntity:
    """모듈 전역 변수"""
    name: str
    type: str
    value: Optional[str] = None
    description: str = ""
    module: Optional[str] = None
    file_path: str = ""
    line_number: int = 0
    unknown_tags: List[Tag] = field(default_factory=list, repr=False)

    KIND = "global"


Entity = Union[ClassEntity, FunctionEntity, FieldEntity, AliasEntity, EnumEntity, GlobalEntity]

# 소속 클래스를 찾지 못한 멤버를 위한 네임스페이스
DETACHED_FIELD = "detached_field"
DETACHED_FUNCTION = "detached_function"


@dataclass
class UnattachedTag:
    """어떤 엔티티에도 연결되지 않은 태그"""
    tag: Tag
    reason: str
    file_path: str = ""
    line_number: int = 0


@dataclass
class Redefinition:
    """같은 종류, 같은 이름으로 다시 정의된 엔티티 기록"""
    kind: str
    name: str
    file_path: str = ""
    line_number: int = 0


@dataclass
class Diagnostic:
    """검증/바인딩 진단 메시지"""
    severity: Severity
    code: str
    message: str
    entity: Optional[str] = None
    file_path: str = ""
    line_number: int = 0

    def __str__(self) -> str:
        location = ""
        if self.file_path:
            location = f"{self.file_path}:{self.line_number}: "
        return f"{location}{self.severity.value}[{self.code}]: {self.message}"


class DocModel:
    """
    문서 그래프

    (종류, 이름) -> 엔티티 매핑과 최초 등장 순서를 함께 유지합니다.
    엔티티는 삭제되지 않으며, 소속 클래스가 없던 멤버만
    build 마지막 단계에서 클래스 안으로 옮겨집니다.
    """

    def __init__(self):
        self._entities: Dict[Tuple[str, str], Entity] = {}
        self._order: List[Tuple[str, str]] = []
        self.table_paths: Dict[str, str] = {}
        self.unattached: List[UnattachedTag] = []
        self.redefinitions: List[Redefinition] = []

    def __len__(self) -> int:
        return len(self._order)

    def get(self, kind: str, name: str) -> Optional[Entity]:
        return self._entities.get((kind, name))

    def add(self, entity: Entity) -> Entity:
        key = (entity.KIND, entity.name)
        if key in self._entities:
            raise KeyError(f"{entity.KIND} '{entity.name}' already exists")
        self._entities[key] = entity
        self._order.append(key)
        return entity

    def redefine(self, entity: Entity) -> Entity:
        """같은 이름의 엔티티를 기록하고 최초 위치에서 교체 (last wins)"""
        key = (entity.KIND, entity.name)
        if key not in self._entities:
            return self.add(entity)
        self.redefinitions.append(
            Redefinition(entity.KIND, entity.name, entity.file_path, entity.line_number)
        )
        self._entities[key] = entity
        return entity

    def get_class(self, name: Optional[str]) -> Optional[ClassEntity]:
        if name is None:
            return None
        return self._entities.get((ClassEntity.KIND, name))

    def add_detached(self, member: Union[FieldEntity, FunctionEntity]) -> None:
        namespace = DETACHED_FIELD if isinstance(member, FieldEntity) else DETACHED_FUNCTION
        key = (namespace, f"{member.owner}.{member.name}")
        if key in self._entities:
            if isinstance(member, FieldEntity):
                # 같은 필드를 두 번 할당한 경우 마지막 값 유지
                self._entities[key] = member
            return
        self._entities[key] = member
        self._order.append(key)

    def get_detached_function(self, owner: str, name: str) -> Optional[FunctionEntity]:
        return self._entities.get((DETACHED_FUNCTION, f"{owner}.{name}"))

    def attach_detached(self) -> int:
        """소속 클래스가 나중에 선언된 멤버를 클래스 안으로 옮김"""
        attached = 0
        for key in list(self._order):
            if key[0] not in (DETACHED_FIELD, DETACHED_FUNCTION):
                continue
            member = self._entities[key]
            cls = self.get_class(member.owner) or self.get_class(self.table_paths.get(member.owner))
            if cls is None:
                continue
            member.owner = cls.name
            if isinstance(member, FieldEntity):
                cls.fields.append(member)
            else:
                cls.methods.append(member)
            del self._entities[key]
            self._order.remove(key)
            attached += 1
        return attached

    def entities(self) -> List[Entity]:
        """최초 등장 순서의 최상위 엔티티 목록"""
        return [self._entities[key] for key in self._order]

    def of_kind(self, kind: str) -> List[Entity]:
        return [self._entities[key] for key in self._order if key[0] == kind]

    def detached(self) -> List[Union[FieldEntity, FunctionEntity]]:
        return [
            self._entities[key] for key in self._order
            if key[0] in (DETACHED_FIELD, DETACHED_FUNCTION)
        ]

    def iter_functions(self) -> Iterator[FunctionEntity]:
        """최상위 함수, 메서드, 소속 없는 함수를 모두 순회"""
        for entity in self.entities():
            if isinstance(entity, FunctionEntity):
                yield entity
            elif isinstance(entity, ClassEntity):
                yield from entity.methods

    def iter_fields(self) -> Iterator[FieldEntity]:
        for entity in self.entities():
            if isinstance(entity, FieldEntity):
                yield entity
            elif isinstance(entity, ClassEntity):
                yield from entity.fields

    def type_names(self) -> Dict[str, str]:
        """타입으로 참조 가능한 이름 -> 종류 (class/alias/enum)"""
        names: Dict[str, str] = {}
        for kind, name in self._order:
            if kind in (ClassEntity.KIND, AliasEntity.KIND, EnumEntity.KIND):
                names.setdefault(name, kind)
        return names

    def modules(self) -> List[str]:
        seen: List[str] = []
        for entity in self.entities():
            module = getattr(entity, "module", None)
            if module and module not in seen:
                seen.append(module)
        return seen
