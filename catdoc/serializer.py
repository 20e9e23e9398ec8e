"""
Canonical JSON serializer for the documentation graph.

이 모듈은 DocModel을 최초 등장 순서의 JSON 배열로 출력합니다.
값이 없는 선택 필드는 null 대신 생략하고, 리터럴은 소스 원문 그대로 기록합니다.
"""

import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import SerializationError
from .models import (
    AliasEntity, ClassEntity, DocModel, Entity, EnumEntity, FieldEntity,
    FunctionEntity, FunctionSignature, GlobalEntity, Param, Return
)

logger = logging.getLogger(__name__)

DOC_FILENAME = "doc.json"


class JsonSerializer:
    """DocModel JSON 직렬화기"""

    def __init__(self, indent: int = 2):
        self.indent = indent
        self._entity_writers = {
            ClassEntity: self._class,
            FunctionEntity: self._function,
            FieldEntity: self._field,
            AliasEntity: self._alias,
            EnumEntity: self._enum,
            GlobalEntity: self._global,
        }

    def to_data(self, model: DocModel) -> List[Dict[str, Any]]:
        return [self.entity(entity) for entity in model.entities()]

    def serialize(self, model: DocModel) -> str:
        """모델을 JSON 텍스트로 변환 (같은 입력이면 바이트 단위로 동일)"""
        text = json.dumps(self.to_data(model), indent=self.indent, ensure_ascii=False)
        return text + "\n"

    def write(self, model: DocModel, path: Union[str, Path]) -> Path:
        """
        JSON 파일 쓰기

        Raises:
            SerializationError: 출력 파일을 쓸 수 없는 경우
        """
        path = Path(path)
        text = self.serialize(model)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise SerializationError(f"cannot write {path}: {e}") from e
        logger.info(f"JSON 문서 생성 완료: {path}")
        return path

    def entity(self, entity: Entity) -> Dict[str, Any]:
        return self._entity_writers[type(entity)](entity)

    @staticmethod
    def _put(data: Dict[str, Any], key: str, value: Any):
        """빈 값은 생략"""
        if value is None or value == "" or value == [] or value is False:
            return
        data[key] = value

    @staticmethod
    def _locate(data: Dict[str, Any], entity) -> Dict[str, Any]:
        """소스 위치 (`{"file", "line"}`), 파일 이름이 없으면 생략"""
        if entity.file_path:
            data["location"] = OrderedDict(file=entity.file_path, line=entity.line_number)
        return data

    def _class(self, cls: ClassEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(kind=cls.KIND, name=cls.name)
        self._put(data, "module", cls.module)
        self._put(data, "description", cls.description)
        self._put(data, "parents", list(cls.parents))
        self._put(data, "deprecated", cls.deprecated)

        # 같은 이름의 필드는 마지막 선언이 최초 위치를 차지
        fields: "OrderedDict[str, FieldEntity]" = OrderedDict()
        for field_entity in cls.fields:
            fields[field_entity.name] = field_entity
        data["fields"] = [self._field(f) for f in fields.values()]
        data["methods"] = [self._function(m) for m in cls.methods]
        return self._locate(data, cls)

    def _field(self, field_entity: FieldEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(
            kind=field_entity.KIND, owner=field_entity.owner, name=field_entity.name,
            type=field_entity.type,
        )
        self._put(data, "value", field_entity.value)
        self._put(data, "visibility", field_entity.visibility)
        self._put(data, "description", field_entity.description)
        self._put(data, "deprecated", field_entity.deprecated)
        return self._locate(data, field_entity)

    def _function(self, function: FunctionEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(kind=function.KIND, name=function.name)
        self._put(data, "owner", function.owner)
        if function.owner is None:
            self._put(data, "module", function.module)
        self._put(data, "method", function.is_method)
        self._put(data, "description", function.description)
        self._put(data, "generics", list(function.generics))
        data["params"] = [self._param(p) for p in function.params]
        data["returns"] = [self._return(r) for r in function.returns]
        self._put(data, "overloads", [self._signature(s) for s in function.overloads])
        data["nodiscard"] = function.nodiscard
        self._put(data, "deprecated", function.deprecated)
        return self._locate(data, function)

    def _signature(self, signature: FunctionSignature) -> Dict[str, Any]:
        return OrderedDict(
            params=[self._param(p) for p in signature.params],
            returns=[self._return(r) for r in signature.returns],
        )

    def _param(self, param: Param) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(
            name=param.name, type=param.type or "any", optional=param.optional,
        )
        self._put(data, "description", param.description)
        return data

    def _return(self, ret: Return) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(type=ret.type)
        self._put(data, "name", ret.name)
        self._put(data, "description", ret.description)
        return data

    def _alias(self, alias: AliasEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(kind=alias.KIND, name=alias.name)
        self._put(data, "type", alias.type)
        self._put(data, "module", alias.module)
        self._put(data, "description", alias.description)
        self._put(data, "values", [
            self._alias_value(value, description) for value, description in alias.values
        ])
        return self._locate(data, alias)

    def _alias_value(self, value: str, description: str) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(value=value)
        self._put(data, "description", description)
        return data

    def _enum(self, enum: EnumEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(kind=enum.KIND, name=enum.name)
        self._put(data, "module", enum.module)
        self._put(data, "description", enum.description)
        data["members"] = [OrderedDict(name=m.name, value=m.value) for m in enum.members]
        return self._locate(data, enum)

    def _global(self, entity: GlobalEntity) -> Dict[str, Any]:
        data: Dict[str, Any] = OrderedDict(kind=entity.KIND, name=entity.name, type=entity.type)
        self._put(data, "value", entity.value)
        self._put(data, "module", entity.module)
        self._put(data, "description", entity.description)
        return self._locate(data, entity)


def serialize_model(model: DocModel) -> str:
    return JsonSerializer().serialize(model)


def write_model(model: DocModel, path: Union[str, Path]) -> Path:
    return JsonSerializer().write(model, path)
