"""核心基础设施：配置、安全、存储、异常与依赖注入 (Core infrastructure)"""
