"""
配置 Schema 定义

使用 Pydantic 定义 YAML 构建描述的模型，支持验证和类型检查。
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

PACKAGE_NAME_RE = re.compile(r'^[a-z0-9][a-z0-9+.\-]+$')
PACKAGE_VERSION_RE = re.compile(r'^(?:\d+:)?[0-9][A-Za-z0-9.+~\-]*$')
ARCHITECTURE_RE = re.compile(r'^[a-z0-9][a-z0-9\-]*$')

ARCH_PLACEHOLDER = "%arch%"


class Priority(str, Enum):
    """Debian 优先级"""
    REQUIRED = "required"
    IMPORTANT = "important"
    STANDARD = "standard"
    OPTIONAL = "optional"
    EXTRA = "extra"


class PackageModel(BaseModel):
    """包元信息模型"""
    name: str = Field(..., description="包名", min_length=2, max_length=100)
    version: str = Field(..., description="Debian 版本号 [epoch:]upstream[-revision]", min_length=1)
    architecture: List[str] = Field(default_factory=lambda: ["all"], description="目标架构列表", min_length=1)
    maintainer: str = Field(..., description="维护者，例如 'Name <mail@example.com>'", min_length=1)
    description: str = Field(..., description="包描述，第一行为简要说明", min_length=1)
    homepage: Optional[str] = Field(None, description="项目主页")
    section: Optional[str] = Field(None, description="所属分区，例如 utils")
    priority: Priority = Field(Priority.OPTIONAL, description="优先级")
    essential: bool = Field(False, description="是否为必需包")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """验证包名（小写字母、数字和 + - .）"""
        if not PACKAGE_NAME_RE.match(v):
            raise ValueError("包名只能包含小写字母、数字和 + - .，且必须以字母或数字开头")
        return v

    @field_validator('version')
    @classmethod
    def validate_version(cls, v: str) -> str:
        """验证 Debian 版本号格式"""
        if not PACKAGE_VERSION_RE.match(v) or v.endswith('-'):
            raise ValueError("版本号格式不正确，支持格式：1.0.0、1.0.0-1、2:1.0.0-1 等")
        return v

    @field_validator('architecture', mode='before')
    @classmethod
    def validate_architecture(cls, v: Any) -> Any:
        """架构既可以写成单个字符串也可以写成列表"""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            cleaned = []
            for arch in v:
                arch = str(arch).strip()
                if not ARCHITECTURE_RE.match(arch):
                    raise ValueError(f"无效的架构名称: {arch}")
                if arch not in cleaned:
                    cleaned.append(arch)
            return cleaned
        return v

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: str) -> str:
        """描述的第一行不能为空"""
        if not v.strip() or not v.strip().splitlines()[0].strip():
            raise ValueError("描述的第一行（简要说明）不能为空")
        return v

    @property
    def upstream_version(self) -> str:
        """去掉 epoch 的版本号，用于文件名"""
        return self.version.split(':', 1)[1] if ':' in self.version else self.version


class ControlModel(BaseModel):
    """控制信息模型：包关系、配置文件与维护脚本"""
    pre_depends: List[str] = Field(default_factory=list, description="Pre-Depends")
    depends: List[str] = Field(default_factory=list, description="Depends")
    recommends: List[str] = Field(default_factory=list, description="Recommends")
    suggests: List[str] = Field(default_factory=list, description="Suggests")
    conflicts: List[str] = Field(default_factory=list, description="Conflicts")
    breaks: List[str] = Field(default_factory=list, description="Breaks")
    replaces: List[str] = Field(default_factory=list, description="Replaces")
    provides: List[str] = Field(default_factory=list, description="Provides")

    conffiles: List[str] = Field(default_factory=list, description="配置文件路径（安装后的路径）")

    pre_install: Optional[Path] = Field(None, description="preinst 脚本源文件")
    post_install: Optional[Path] = Field(None, description="postinst 脚本源文件")
    pre_remove: Optional[Path] = Field(None, description="prerm 脚本源文件")
    post_remove: Optional[Path] = Field(None, description="postrm 脚本源文件")

    @field_validator(
        'pre_depends', 'depends', 'recommends', 'suggests',
        'conflicts', 'breaks', 'replaces', 'provides', 'conffiles',
    )
    @classmethod
    def validate_entries(cls, v: List[str]) -> List[str]:
        """去除空白项"""
        cleaned = [item.strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError("列表项不能为空")
        return cleaned

    @field_validator('conffiles')
    @classmethod
    def validate_conffiles(cls, v: List[str]) -> List[str]:
        """配置文件路径不能包含上级目录引用"""
        for item in v:
            if '..' in item.replace('\\', '/').split('/'):
                raise ValueError(f"配置文件路径不能包含 '..': {item}")
        return v


class DataMappingModel(BaseModel):
    """数据映射：源文件/目录 -> 包内目标路径"""
    source: str = Field(..., description="源文件或目录，可包含 %arch% 占位符", min_length=1)
    target: str = Field(..., description="包内目标路径，例如 usr/bin/tool", min_length=1)
    recursive: bool = Field(True, description="源为目录时是否递归包含子目录")

    @field_validator('target')
    @classmethod
    def validate_target(cls, v: str) -> str:
        """目标路径不能越过包根目录"""
        normalized = v.replace('\\', '/').strip()
        if '..' in normalized.split('/'):
            raise ValueError(f"目标路径不能包含 '..': {v}")
        if not normalized.strip('/.'):
            raise ValueError("目标路径不能指向包根目录")
        return normalized

    def source_for(self, architecture: str) -> Path:
        """替换 %arch% 占位符后的源路径"""
        return Path(self.source.replace(ARCH_PLACEHOLDER, architecture))


class CompressionModel(BaseModel):
    """压缩配置模型"""
    level: int = Field(9, description="gzip 压缩级别", ge=1, le=9)


class BuildOptionsModel(BaseModel):
    """构建选项模型"""
    mtime: Optional[int] = Field(
        None,
        description="归档条目时间戳（Unix 秒），未设置时使用 SOURCE_DATE_EPOCH 或当前时间",
        ge=0,
    )


class ConfigModel(BaseModel):
    """配置元信息模型"""
    version: int = Field(1, description="配置 schema 版本", ge=1)

    @field_validator('version')
    @classmethod
    def validate_config_version(cls, v: int) -> int:
        """验证配置版本"""
        SUPPORTED_VERSIONS = [1]
        if v not in SUPPORTED_VERSIONS:
            raise ValueError(f"不支持的配置版本 {v}，支持的版本: {SUPPORTED_VERSIONS}")
        return v


class PackageConfig(BaseModel):
    """构建描述根模型"""

    config: ConfigModel = Field(default_factory=ConfigModel, description="配置元信息")

    package: PackageModel = Field(..., description="包元信息")
    data: List[DataMappingModel] = Field(..., description="数据映射列表", min_length=1)

    control: ControlModel = Field(default_factory=ControlModel, description="控制信息")
    exclude: Optional[List[str]] = Field(None, description="排除模式列表（glob 格式）")
    compression: CompressionModel = Field(default_factory=CompressionModel, description="压缩配置")
    build: BuildOptionsModel = Field(default_factory=BuildOptionsModel, description="构建选项")

    model_config = {
        "extra": "forbid",
        "validate_assignment": True,
        "str_strip_whitespace": True,
    }

    @model_validator(mode='after')
    def validate_unique_targets(self) -> 'PackageConfig':
        """同一个目标路径不能被映射两次"""
        seen = set()
        for mapping in self.data:
            key = mapping.target.strip('/')
            if key in seen:
                raise ValueError(f"数据映射的目标路径重复: {mapping.target}")
            seen.add(key)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = self.model_dump(exclude_none=True)

        def convert_values(obj):
            if isinstance(obj, dict):
                return {k: convert_values(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_values(item) for item in obj]
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, Path):
                return str(obj)
            else:
                return obj

        return convert_values(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PackageConfig':
        """从字典创建配置实例"""
        return cls.model_validate(data)

    def get_package_filename(self, architecture: str) -> str:
        """获取输出文件名 <name>_<version>_<arch>.deb"""
        return f"{self.package.name}_{self.package.upstream_version}_{architecture}.deb"

    def select_architectures(self, requested: Optional[List[str]] = None) -> List[str]:
        """筛选要构建的架构

        Raises:
            ValueError: 请求了未在配置中声明的架构
        """
        if not requested:
            return list(self.package.architecture)

        unknown = [arch for arch in requested if arch not in self.package.architecture]
        if unknown:
            raise ValueError(f"配置中未声明的架构: {', '.join(unknown)}")
        return [arch for arch in self.package.architecture if arch in requested]
