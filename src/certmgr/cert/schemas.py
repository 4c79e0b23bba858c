"""
证书管理的数据模型定义。
"""

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class CA(BaseModel):
    """
    一个已配置的签发机构（CA）。
    File 保存当前的 PEM 证书材料，不参与序列化，只能通过 set_pem 修改。
    """
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    remote: str = ""  # 签发服务地址
    label: str = ""
    profile: str = ""
    auth_key: str = ""
    auth_key_file: str = ""

    _file: bytes | None = PrivateAttr(default=None)

    def set_pem(self, buffer: bytes | None) -> None:
        """无条件替换 PEM 材料，不做任何校验。"""
        self._file = buffer

    def get_pem(self) -> bytes | None:
        return self._file


class CertificateSubject(BaseModel):
    """
    证书中与身份相关的字段。
    """
    common_name: list[str] = Field(default_factory=list)
    organization: list[str] = Field(default_factory=list)
    organizational_unit: list[str] = Field(default_factory=list)
    locality: list[str] = Field(default_factory=list)
    province: list[str] = Field(default_factory=list)
    country: list[str] = Field(default_factory=list)
    dns_names: list[str] = Field(default_factory=list)
    ip_addresses: list[str] = Field(default_factory=list)  # 规范化后的 IP 字符串
