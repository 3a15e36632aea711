"""
schemas
-------

MCP 도구 인자 검증.

도구 인자는 타입 없는 dict 로 들어오므로, 프로토콜 경계에서 pydantic 모델로
검증한 뒤 ParsedRequest 또는 InvalidArguments 둘 중 하나로 돌려준다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _ToolArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DeployRequest(_ToolArguments):
    source_path: str = Field(alias="sourcePath", min_length=1)
    bucket_name: Optional[str] = Field(default=None, alias="bucketName")
    destination_prefix: Optional[str] = Field(default=None, alias="destinationPrefix")


class ConfigureRequest(_ToolArguments):
    bucket_name: str = Field(alias="bucketName", min_length=1)
    project_id: Optional[str] = Field(default=None, alias="projectId")
    subfolder: Optional[str] = None


M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ParsedRequest(Generic[M]):
    request: M


@dataclass(frozen=True)
class InvalidArguments:
    fields: Tuple[str, ...]
    detail: str

    def message(self) -> str:
        names = ", ".join(self.fields) or "(arguments)"
        return f"Missing or invalid argument(s): {names}"


def parse_arguments(
    model: Type[M], arguments: Optional[Mapping[str, Any]]
) -> Union[ParsedRequest[M], InvalidArguments]:
    try:
        return ParsedRequest(model.model_validate(dict(arguments or {})))
    except ValidationError as e:
        fields = []
        for err in e.errors():
            name = ".".join(str(p) for p in err.get("loc", ()))
            if name and name not in fields:
                fields.append(name)
        return InvalidArguments(fields=tuple(fields), detail=str(e))
