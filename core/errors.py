"""
引导层异常定义
"""


class BootstrapError(Exception):
    """引导过程中的致命错误基类"""


class KeySourceError(BootstrapError):
    """无法获得配置加密密钥"""


class ConfigNotFoundError(BootstrapError):
    """配置文件不存在, 需要运行 -config 进行配置"""

    def __init__(self, path: str):
        super().__init__(f"configuration file not found: {path} (use '-config' option)")
        self.path = path


class ConfigDecryptError(BootstrapError):
    """配置文件无法解密或反序列化, 内容不可信"""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"failed to decrypt configuration {path}: {reason} (use '-config' option)"
        )
        self.path = path
        self.reason = reason


class ConfigFormatError(ConfigDecryptError):
    """文件格式错误: 魔数/版本不符、文件截断或内容不是字符串映射"""


class ConfigTamperedError(ConfigDecryptError):
    """认证标签校验失败: 文件被篡改或密钥错误"""


class ConfigInvalidError(BootstrapError):
    """配置可以解密但缺少必需的键"""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"invalid configurations: missing {', '.join(self.missing)}")


class DatabaseConnectionError(BootstrapError):
    """无法建立数据库连接"""


class DatabaseDriverError(BootstrapError):
    """所选数据库方言的驱动未安装"""


class PhaseError(BootstrapError):
    """引擎生命周期阶段转换非法"""
