"""ven - Go 源码依赖 vendor 工具"""

__version__ = "0.3.0"
