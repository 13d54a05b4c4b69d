"""ytdlp-bridge 数据类型定义。

ytdlp-bridge v0.1.0

- ReleaseDescriptor: 远端发布记录（只读取 tag_name）
- VideoMetadata: 元数据查询返回的单个 JSON 对象
- BinaryHandle: 本地 yt-dlp 可执行文件引用
- CommandResult: 运行到结束的命令输出
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ExecutionError, InvalidBinaryPathError

__all__ = [
    "ReleaseDescriptor",
    "VideoMetadata",
    "BinaryHandle",
    "BinaryLike",
    "CommandResult",
]


class ReleaseDescriptor(BaseModel):
    """一个已发布的 yt-dlp 版本。

    Attributes:
        tag: 版本标识（对应 JSON 的 tag_name 字段）
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    tag: str = Field(alias="tag_name")


class VideoMetadata(BaseModel):
    """视频元数据。

    对应 `-O "%(.{id,title,thumbnail,duration})#j"` 的输出。
    duration 为非负整数秒，整数值的浮点数（如 42.0）按整数接受。
    字段缺失或为 null 时取零值（"" / 0）：直播没有 duration，
    部分提取器不提供 thumbnail。类型错误仍然是解码失败。
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
    )

    id: str = ""
    title: str = ""
    thumbnail: str = ""
    duration: int = Field(default=0, ge=0)

    @field_validator("id", "title", "thumbnail", mode="before")
    @classmethod
    def null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("duration", mode="before")
    @classmethod
    def null_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


@dataclass(frozen=True)
class BinaryHandle:
    """已安装 yt-dlp 的本地引用。

    构造时只校验路径非空；文件是否存在、是否可执行不做检查，
    由进程启动时的错误体现。
    """

    path: Path

    def __post_init__(self) -> None:
        raw = os.fspath(self.path) if self.path is not None else ""
        if not raw:
            raise InvalidBinaryPathError()
        object.__setattr__(self, "path", Path(raw))

    @classmethod
    def coerce(cls, value: "BinaryLike") -> "BinaryHandle":
        """把路径或已有 handle 统一成 BinaryHandle。"""
        if isinstance(value, cls):
            return value
        return cls(value)  # type: ignore[arg-type]

    def __str__(self) -> str:
        return str(self.path)


BinaryLike = Union[BinaryHandle, str, "os.PathLike[str]"]


@dataclass
class CommandResult:
    """运行到结束的命令结果。

    不论退出码如何都保留原始输出；需要异常时调用 raise_for_status()。

    Attributes:
        argv: 执行的命令行
        output: stdout + stderr 合并文本
        returncode: 退出码
    """

    argv: list[str] = field(default_factory=list)
    output: str = ""
    returncode: int = 0

    @property
    def ok(self) -> bool:
        """退出码是否为 0。"""
        return self.returncode == 0

    def to_error(self) -> ExecutionError:
        """构造对应的 ExecutionError。"""
        return ExecutionError(self.argv, self.returncode, self.output)

    def raise_for_status(self) -> None:
        """非零退出时抛出 ExecutionError。"""
        if not self.ok:
            raise self.to_error()
