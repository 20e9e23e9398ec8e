"""
Documentation model validation.

이 모듈은 완성된 DocModel을 읽기 전용으로 검사하여 진단 목록을 만듭니다.
모든 검사는 순서대로 실행되며 중간에 중단되지 않습니다.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterator, List, Set, Tuple

from .models import (
    AliasEntity, ClassEntity, Diagnostic, DocModel, EnumEntity, FieldEntity,
    FunctionEntity, FunctionSignature, GlobalEntity, Severity
)
from .tags import type_identifiers

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = frozenset({
    "any", "boolean", "function", "integer", "lightuserdata", "nil", "number",
    "self", "string", "table", "thread", "true", "false", "unknown",
    "userdata", "void",
})


class DocValidator:
    """DocModel 검증기"""

    def __init__(self, model: DocModel):
        self.model = model

    def validate(self) -> List[Diagnostic]:
        """
        모든 검사 실행

        Returns:
            진단 목록 (검사 순서대로)
        """
        diagnostics: List[Diagnostic] = []
        diagnostics.extend(self._check_owners())
        diagnostics.extend(self._check_duplicate_fields())
        diagnostics.extend(self._check_unknown_tags())
        diagnostics.extend(self._check_type_references())
        diagnostics.extend(self._check_conflicts())
        diagnostics.extend(self._check_required_fields())

        errors = sum(1 for d in diagnostics if d.severity is Severity.ERROR)
        logger.info(f"검증 완료: 오류 {errors}개, 경고 {len(diagnostics) - errors}개")
        return diagnostics

    def _check_owners(self) -> List[Diagnostic]:
        """소속 클래스가 없는 필드/메서드 (소유자 이름별로 하나)"""
        missing: "OrderedDict[str, List]" = OrderedDict()
        for entity in self.model.entities():
            if isinstance(entity, ClassEntity):
                members = list(entity.fields) + list(entity.methods)
            elif isinstance(entity, (FieldEntity, FunctionEntity)) and entity.owner:
                members = [entity]
            else:
                continue
            for member in members:
                if self.model.get_class(member.owner) is None:
                    missing.setdefault(member.owner, []).append(member)

        diagnostics = []
        for owner, members in missing.items():
            names = ", ".join(member.full_name for member in members)
            diagnostics.append(Diagnostic(
                severity=Severity.ERROR,
                code="unresolved-owner",
                message=f"class '{owner}' is not declared (referenced by {names})",
                entity=owner,
                file_path=members[0].file_path,
                line_number=members[0].line_number,
            ))
        return diagnostics

    def _check_duplicate_fields(self) -> List[Diagnostic]:
        diagnostics = []
        for cls in self.model.of_kind(ClassEntity.KIND):
            seen: Dict[str, FieldEntity] = {}
            for field_entity in cls.fields:
                previous = seen.get(field_entity.name)
                if previous is not None and previous.type != field_entity.type:
                    diagnostics.append(Diagnostic(
                        severity=Severity.WARNING,
                        code="duplicate-field",
                        message=(
                            f"{cls.name}.{field_entity.name} declared as '{previous.type}' "
                            f"and '{field_entity.type}'"
                        ),
                        entity=cls.name,
                        file_path=field_entity.file_path,
                        line_number=field_entity.line_number,
                    ))
                seen[field_entity.name] = field_entity
        return diagnostics

    def _entity_tags(self) -> Iterator[Tuple[str, object]]:
        for entity in self.model.entities():
            name = getattr(entity, "full_name", entity.name)
            yield name, entity
            if isinstance(entity, ClassEntity):
                for member in list(entity.fields) + list(entity.methods):
                    yield member.full_name, member

    def _check_unknown_tags(self) -> List[Diagnostic]:
        diagnostics = []
        for name, entity in self._entity_tags():
            for tag in entity.unknown_tags:
                diagnostics.append(self._unknown_tag(tag, name, entity.file_path, entity.line_number))
        for item in self.model.unattached:
            if item.reason == "unknown tag":
                diagnostics.append(self._unknown_tag(item.tag, "unattached", item.file_path, item.line_number))
            elif item.reason != "orphan":
                # orphan 태그는 바인딩 단계에서 이미 보고됨
                diagnostics.append(Diagnostic(
                    severity=Severity.WARNING,
                    code="unattached-tag",
                    message=f"tag '{item.tag.raw}' was not attached to any entity ({item.reason})",
                    entity="unattached",
                    file_path=item.file_path,
                    line_number=item.line_number,
                ))
        return diagnostics

    @staticmethod
    def _unknown_tag(tag, entity: str, file_path: str, line_number: int) -> Diagnostic:
        detail = f" ({tag.error})" if tag.error else ""
        return Diagnostic(
            severity=Severity.WARNING,
            code="unknown-tag",
            message=f"unrecognized tag '{tag.raw}'{detail}",
            entity=entity,
            file_path=file_path,
            line_number=line_number,
        )

    def _type_uses(self) -> Iterator[Tuple[str, str, Set[str], object]]:
        """(문맥 이름, 타입 표현식, 제네릭 이름, 엔티티) 순회"""
        for entity in self.model.entities():
            if isinstance(entity, ClassEntity):
                for parent in entity.parents:
                    yield entity.name, parent, set(), entity
                for field_entity in entity.fields:
                    yield field_entity.full_name, field_entity.type, set(), field_entity
            elif isinstance(entity, FieldEntity):
                yield entity.full_name, entity.type, set(), entity
            elif isinstance(entity, (AliasEntity, GlobalEntity)):
                if entity.type:
                    yield entity.name, entity.type, set(), entity
        for function in self.model.iter_functions():
            generics = set(function.generics)
            signatures = [function.signature()] + list(function.overloads)
            for signature in signatures:
                for type_expr in self._signature_types(signature):
                    yield function.full_name, type_expr, generics, function

    @staticmethod
    def _signature_types(signature: FunctionSignature) -> Iterator[str]:
        for param in signature.params:
            if param.type:
                yield param.type
        for ret in signature.returns:
            yield ret.type

    def _check_type_references(self) -> List[Diagnostic]:
        known = self.model.type_names()
        reported: Set[Tuple[str, str]] = set()
        diagnostics = []
        for context, type_expr, generics, entity in self._type_uses():
            if not type_expr:
                continue
            for name in type_identifiers(type_expr):
                if name in PRIMITIVE_TYPES or name in known or name in generics:
                    continue
                if (context, name) in reported:
                    continue
                reported.add((context, name))
                diagnostics.append(Diagnostic(
                    severity=Severity.WARNING,
                    code="unknown-type",
                    message=f"{context}: unknown type '{name}'",
                    entity=context,
                    file_path=entity.file_path,
                    line_number=entity.line_number,
                ))
        return diagnostics

    def _check_conflicts(self) -> List[Diagnostic]:
        diagnostics = []
        types: Dict[str, List[object]] = OrderedDict()
        values: Dict[str, object] = {}
        for entity in self.model.entities():
            if isinstance(entity, (ClassEntity, AliasEntity, EnumEntity)):
                types.setdefault(entity.name, []).append(entity)
            elif isinstance(entity, GlobalEntity) or (
                isinstance(entity, FunctionEntity) and entity.owner is None
            ):
                values.setdefault(entity.name, entity)

        for name, entities in types.items():
            kinds = [entity.KIND for entity in entities]
            if len(entities) > 1:
                diagnostics.append(Diagnostic(
                    severity=Severity.WARNING,
                    code="name-conflict",
                    message=f"'{name}' is declared as {' and '.join(kinds)}",
                    entity=name,
                    file_path=entities[-1].file_path,
                    line_number=entities[-1].line_number,
                ))
            if ClassEntity.KIND in kinds and name in values:
                value = values[name]
                diagnostics.append(Diagnostic(
                    severity=Severity.ERROR,
                    code="name-conflict",
                    message=f"class '{name}' shares its name with a {value.KIND}",
                    entity=name,
                    file_path=value.file_path,
                    line_number=value.line_number,
                ))

        for redefinition in self.model.redefinitions:
            diagnostics.append(Diagnostic(
                severity=Severity.WARNING,
                code="redefinition",
                message=f"{redefinition.kind} '{redefinition.name}' is defined more than once",
                entity=redefinition.name,
                file_path=redefinition.file_path,
                line_number=redefinition.line_number,
            ))
        return diagnostics

    def _check_required_fields(self) -> List[Diagnostic]:
        diagnostics = []
        for function in self.model.iter_functions():
            for param in function.params:
                if param.type is None and param.name != "self":
                    diagnostics.append(self._warning(
                        "missing-type",
                        f"{function.full_name}: parameter '{param.name}' has no @param type",
                        function,
                    ))
            for name in function.undeclared_params:
                diagnostics.append(self._warning(
                    "param-mismatch",
                    f"{function.full_name}: @param '{name}' does not match any parameter",
                    function,
                ))
        for alias in self.model.of_kind(AliasEntity.KIND):
            if not alias.type:
                diagnostics.append(self._warning(
                    "missing-type", f"alias '{alias.name}' has no type", alias,
                ))
        return diagnostics

    @staticmethod
    def _warning(code: str, message: str, entity) -> Diagnostic:
        return Diagnostic(
            severity=Severity.WARNING,
            code=code,
            message=message,
            entity=getattr(entity, "full_name", entity.name),
            file_path=entity.file_path,
            line_number=entity.line_number,
        )


def validate_model(model: DocModel) -> List[Diagnostic]:
    return DocValidator(model).validate()
