"""
业务服务包 (Business Services Package)

- access_policy.py: 题目查看/编辑/删除权限判定
- credentials.py: 账户注册、登录、管理
- questions.py: 题目保存、批量保存、删除、统计
- history.py: 浏览历史维护
- sync.py: 客户端快照上传与下载
- categories.py: 分类配置
- audit.py: 审计日志
"""
