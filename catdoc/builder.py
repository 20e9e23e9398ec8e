"""
Documentation model builder.

이 모듈은 바인딩 목록을 왼쪽에서 오른쪽으로 한 번 접어(fold) DocModel을 만듭니다.
단계 사이에 전달되는 상태는 DocModel과 명시적인 Scope 값뿐입니다.
"""

import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .binder import Binding, BindingKind
from .models import (
    AliasEntity, ClassEntity, CommentBlock, Declaration, DeclarationKind, DocModel,
    EnumEntity, EnumMember, Entity, FieldEntity, FunctionEntity, FunctionSignature,
    GlobalEntity, Param, Return, Tag, TagKind, UnattachedTag
)

logger = logging.getLogger(__name__)

NUMBER_LITERAL = re.compile(r"^-?(0[xX][0-9a-fA-F]+|\d+)$")
FLOAT_LITERAL = re.compile(r"^-?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")


@dataclass(frozen=True)
class Scope:
    """현재 열린 클래스 경로와 모듈"""
    module: Optional[str] = None
    path: Optional[str] = None
    class_name: Optional[str] = None


def module_name(file_path: str) -> Optional[str]:
    return Path(file_path).stem if file_path else None


def infer_literal_type(value: Optional[str]) -> str:
    """리터럴 원문에서 타입 추론"""
    if value is None:
        return "any"
    text = value.strip()
    if text in ("true", "false"):
        return "boolean"
    if text == "nil":
        return "nil"
    if text[:1] in ("\"", "'") or text.startswith("[["):
        return "string"
    if NUMBER_LITERAL.match(text):
        return "integer"
    if FLOAT_LITERAL.match(text):
        return "number"
    if text.startswith("{"):
        return "table"
    if text.startswith("function"):
        return "function"
    return "any"


def join_descriptions(*parts: str) -> str:
    return "\n\n".join(part for part in parts if part)


def merge_description(existing: str, new: str) -> str:
    """재선언 시 설명을 누적 (같은 내용은 한 번만)"""
    if not new or new == existing:
        return existing
    if not existing:
        return new
    if new in existing.split("\n\n"):
        return existing
    return f"{existing}\n\n{new}"


def resolve_owner(model: DocModel, scope: Scope, owner_path: str) -> str:
    """
    `a.b` 소유자 경로를 클래스 이름으로 변환

    열린 scope 경로 -> 모델의 테이블 경로 매핑 -> 경로 문자열 그대로 순서로 찾습니다.
    """
    if scope.path is not None and owner_path == scope.path:
        return scope.class_name
    if owner_path in model.table_paths:
        return model.table_paths[owner_path]
    return owner_path


def build_model(bindings: Iterable[Binding]) -> DocModel:
    """
    바인딩 목록으로 DocModel 생성

    Args:
        bindings: 파일 처리 순서대로 정렬된 바인딩

    Returns:
        DocModel: 소속 클래스가 나중에 선언된 멤버까지 연결된 모델
    """
    model = DocModel()
    scope = Scope()
    current_file: Optional[str] = None

    for binding in bindings:
        if binding.block.file_path != current_file:
            current_file = binding.block.file_path
            scope = Scope(module=module_name(current_file))
        scope = apply_binding(model, scope, binding)

    attached = model.attach_detached()
    if attached:
        logger.debug(f"나중에 선언된 클래스에 멤버 {attached}개 연결")
    return model


def apply_binding(model: DocModel, scope: Scope, binding: Binding) -> Scope:
    """바인딩 하나를 모델에 반영하고 다음 scope 반환"""
    handler = _HANDLERS[binding.kind]
    scope, entity = handler(model, scope, binding)

    if binding.kind is not BindingKind.ORPHAN:
        _attach_unknown_tags(model, binding.block, entity)
        if binding.kind is not BindingKind.CLASS:
            _apply_stray_fields(model, scope, binding)
    return scope


def _attach_unknown_tags(model: DocModel, block: CommentBlock, entity: Optional[Entity]):
    for tag in block.tags_of(TagKind.UNKNOWN):
        if entity is not None:
            entity.unknown_tags.append(tag)
        else:
            model.unattached.append(UnattachedTag(
                tag=tag, reason="unknown tag", file_path=block.file_path,
                line_number=block.line_number + tag.line,
            ))


def _apply_stray_fields(model: DocModel, scope: Scope, binding: Binding):
    """@class 블록 밖의 @field 태그를 열린 클래스(또는 선언의 소유자)에 연결"""
    block = binding.block
    declaration = binding.declaration
    declared_owner = None
    if declaration is not None and declaration.owner_path:
        declared_owner = resolve_owner(model, scope, declaration.owner_path)

    # 선언이 알려진 클래스를 직접 가리키면 열린 클래스보다 우선
    if declared_owner is not None and model.get_class(declared_owner) is not None:
        owner = declared_owner
    else:
        owner = scope.class_name or declared_owner

    for tag in block.tags_of(TagKind.FIELD):
        if owner is None:
            model.unattached.append(UnattachedTag(
                tag=tag, reason="no open class", file_path=block.file_path,
                line_number=block.line_number + tag.line,
            ))
            continue
        _add_field(model, _field_from_tag(tag, owner, scope, block))


def _field_from_tag(tag: Tag, owner: str, scope: Scope, block: CommentBlock) -> FieldEntity:
    return FieldEntity(
        owner=owner,
        name=tag.name,
        type=tag.type,
        description=join_descriptions(tag.leading, tag.description),
        visibility=tag.visibility,
        module=scope.module,
        file_path=block.file_path,
        line_number=block.line_number + tag.line,
    )


def _add_field(model: DocModel, field_entity: FieldEntity):
    cls = model.get_class(field_entity.owner)
    if cls is not None:
        cls.fields.append(field_entity)
    else:
        model.add_detached(field_entity)


def _describe(block: CommentBlock, tag: Optional[Tag] = None) -> str:
    return join_descriptions(block.description, tag.description if tag else "")


def _apply_meta(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    tag = binding.block.first(TagKind.META)
    module = tag.name or module_name(binding.block.file_path) or scope.module
    logger.debug(f"모듈 시작: {module}")
    return Scope(module=module), None


def _get_or_create_class(model: DocModel, name: str, scope: Scope, block: CommentBlock,
                         line_number: int) -> ClassEntity:
    cls = model.get_class(name)
    if cls is None:
        cls = model.add(ClassEntity(
            name=name, module=scope.module,
            file_path=block.file_path, line_number=line_number,
        ))
    else:
        logger.debug(f"클래스 재선언 병합: {name}")
    return cls


def _add_table_members(model: DocModel, cls: ClassEntity, declaration: Optional[Declaration],
                       scope: Scope, block: CommentBlock):
    if declaration is None:
        return
    for member in declaration.members:
        _add_field(model, FieldEntity(
            owner=cls.name,
            name=member.name,
            type=infer_literal_type(member.value),
            value=member.value,
            module=scope.module,
            file_path=block.file_path,
            line_number=declaration.line_number,
        ))


def _apply_class(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    declaration = binding.declaration
    tag = block.first(TagKind.CLASS)

    line_number = declaration.line_number if declaration else block.line_number
    cls = _get_or_create_class(model, tag.name, scope, block, line_number)
    cls.description = merge_description(cls.description, _describe(block, tag))
    for parent in tag.parents:
        if parent not in cls.parents:
            cls.parents.append(parent)
    if block.has(TagKind.DEPRECATED):
        cls.deprecated = True

    path = declaration.path if declaration else tag.name
    model.table_paths[path] = cls.name

    for field_tag in block.tags_of(TagKind.FIELD):
        _add_field(model, _field_from_tag(field_tag, cls.name, scope, block))
    _add_table_members(model, cls, declaration, scope, block)

    return Scope(module=scope.module, path=path, class_name=cls.name), cls


def _apply_table(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    """@class 없는 테이블 할당은 경로 이름의 클래스로 취급"""
    block = binding.block
    declaration = binding.declaration
    path = declaration.path
    name = model.table_paths.get(path, path)

    cls = _get_or_create_class(model, name, scope, block, declaration.line_number)
    cls.description = merge_description(cls.description, block.description)
    if block.has(TagKind.DEPRECATED):
        cls.deprecated = True
    model.table_paths[path] = cls.name
    _add_table_members(model, cls, declaration, scope, block)

    return Scope(module=scope.module, path=path, class_name=cls.name), cls


def _signature(block: CommentBlock, declaration: Declaration) -> Tuple[FunctionSignature, List[str]]:
    """코드의 매개변수 순서에 @param 타입을 결합"""
    tagged = {tag.name: tag for tag in block.tags_of(TagKind.PARAM)}
    vararg = block.first(TagKind.VARARG)

    signature = FunctionSignature()
    for name in declaration.params:
        tag = tagged.get(name)
        if tag is None and name == "..." and vararg is not None:
            tag = vararg
        if tag is None:
            signature.params.append(Param(name=name))
        else:
            signature.params.append(Param(
                name=name, type=tag.type, optional=tag.optional,
                description=tag.description,
            ))

    for tag in block.tags_of(TagKind.RETURN):
        signature.returns.append(Return(type=tag.type, name=tag.name, description=tag.description))

    undeclared = [name for name in tagged if name not in declaration.params]
    return signature, undeclared


def _apply_function(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    declaration = binding.declaration
    owner = None
    if declaration.owner_path:
        owner = resolve_owner(model, scope, declaration.owner_path)
    name = declaration.short_name

    signature, undeclared = _signature(block, declaration)
    overloads = [tag.signature for tag in block.tags_of(TagKind.OVERLOAD)]
    generics = [n for tag in block.tags_of(TagKind.GENERIC) for n in tag.names]

    existing = _find_function(model, owner, name)
    if existing is not None:
        # 이전 헤더의 시그니처는 overload가 되고 마지막 헤더가 대표 시그니처가 됨
        logger.debug(f"overload 병합: {existing.full_name}")
        existing.overloads.append(existing.signature())
        existing.overloads.extend(overloads)
        existing.params = signature.params
        existing.returns = signature.returns
        existing.nodiscard = block.has(TagKind.NODISCARD)
        existing.description = block.description or existing.description
        for generic in generics:
            if generic not in existing.generics:
                existing.generics.append(generic)
        existing.undeclared_params = undeclared
        if block.has(TagKind.DEPRECATED):
            existing.deprecated = True
        return scope, existing

    function = FunctionEntity(
        name=name,
        owner=owner,
        params=signature.params,
        returns=signature.returns,
        overloads=overloads,
        nodiscard=block.has(TagKind.NODISCARD),
        description=block.description,
        generics=generics,
        deprecated=block.has(TagKind.DEPRECATED),
        is_method=declaration.is_method,
        undeclared_params=undeclared,
        module=scope.module,
        file_path=block.file_path,
        line_number=declaration.line_number,
    )

    if owner is None:
        model.add(function)
        return scope, function

    cls = model.get_class(owner)
    if cls is not None:
        cls.methods.append(function)
    else:
        model.add_detached(function)
    return scope, function


def _find_function(model: DocModel, owner: Optional[str], name: str) -> Optional[FunctionEntity]:
    if owner is None:
        entity = model.get(FunctionEntity.KIND, name)
        return entity if isinstance(entity, FunctionEntity) else None
    cls = model.get_class(owner)
    if cls is not None:
        return cls.find_method(name)
    return model.get_detached_function(owner, name)


def _value_type(block: CommentBlock, declaration: Declaration) -> str:
    type_tag = block.first(TagKind.TYPE)
    if type_tag is not None:
        return type_tag.type
    if declaration.members or declaration.kind is DeclarationKind.MODULE_TABLE:
        return "table"
    return infer_literal_type(declaration.value)


def _apply_field(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    declaration = binding.declaration
    owner = resolve_owner(model, scope, declaration.owner_path)
    field_entity = FieldEntity(
        owner=owner,
        name=declaration.short_name,
        type=_value_type(block, declaration),
        description=_describe(block, block.first(TagKind.TYPE)),
        value=declaration.value,
        deprecated=block.has(TagKind.DEPRECATED),
        module=scope.module,
        file_path=block.file_path,
        line_number=declaration.line_number,
    )
    _add_field(model, field_entity)
    return scope, field_entity


def _apply_global(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    declaration = binding.declaration
    entity = GlobalEntity(
        name=declaration.path,
        type=_value_type(block, declaration),
        value=declaration.value,
        description=_describe(block, block.first(TagKind.TYPE)),
        module=scope.module,
        file_path=block.file_path,
        line_number=declaration.line_number,
    )
    return scope, model.redefine(entity)


def _apply_alias(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    entity = None
    for tag in block.tags_of(TagKind.ALIAS):
        type_parts = [tag.type] if tag.type else []
        type_parts.extend(value for value, _ in tag.values)
        entity = model.redefine(AliasEntity(
            name=tag.name,
            type="|".join(type_parts) or None,
            description=_describe(block, tag),
            values=list(tag.values),
            module=scope.module,
            file_path=block.file_path,
            line_number=block.line_number + tag.line,
        ))
    return scope, entity


def _apply_enum(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    declaration = binding.declaration
    tag = block.first(TagKind.ENUM)
    name = tag.name or (declaration.path if declaration else None)
    if name is None:
        model.unattached.append(UnattachedTag(
            tag=tag, reason="enum without a name", file_path=block.file_path,
            line_number=block.line_number + tag.line,
        ))
        return scope, None

    members = []
    if declaration is not None:
        members = [EnumMember(name=m.name, value=m.value) for m in declaration.members]
    entity = model.redefine(EnumEntity(
        name=name,
        members=members,
        description=_describe(block, tag),
        module=scope.module,
        file_path=block.file_path,
        line_number=declaration.line_number if declaration else block.line_number,
    ))
    return scope, entity


def _apply_local(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    logger.debug(f"지역 선언 건너뜀: {binding.declaration.path}")
    return scope, None


def _apply_description(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    return scope, None


def _apply_orphan(model: DocModel, scope: Scope, binding: Binding) -> Tuple[Scope, Optional[Entity]]:
    block = binding.block
    for tag in binding.orphans:
        model.unattached.append(UnattachedTag(
            tag=tag, reason="orphan", file_path=block.file_path,
            line_number=block.line_number + tag.line,
        ))
    return scope, None


_HANDLERS = {
    BindingKind.META: _apply_meta,
    BindingKind.CLASS: _apply_class,
    BindingKind.TABLE: _apply_table,
    BindingKind.FUNCTION: _apply_function,
    BindingKind.FIELD: _apply_field,
    BindingKind.GLOBAL: _apply_global,
    BindingKind.ALIAS: _apply_alias,
    BindingKind.ENUM: _apply_enum,
    BindingKind.LOCAL: _apply_local,
    BindingKind.DESCRIPTION: _apply_description,
    BindingKind.ORPHAN: _apply_orphan,
}
