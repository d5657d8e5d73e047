"""
StudyNotes 学习笔记服务 (Study Notes Service)

题目记录、浏览历史、标签与批注的多用户管理，以及客户端与服务端的数据同步。
"""

__version__ = "1.0.0"
