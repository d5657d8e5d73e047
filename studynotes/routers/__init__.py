"""
学习笔记路由模块包 (Study Notes Router Module Package)

本包包含所有 REST API 路由模块，按功能域进行组织，路径均以 /api 开头。

路由模块组织结构 (Router Module Organization):
- auth.py: 用户认证（注册、登录、当前用户）
- users.py: 用户管理（列表、启用/禁用、角色、删除），仅管理员
- questions.py: 题目管理（查询、保存、批量保存、删除、统计、管理员汇总）
- records.py: 浏览历史、标签与批注
- sync.py: 数据同步（上传、下载）
- categories.py: 分类配置，仅管理员
"""
