"""
API 層（FastAPI routers）

- rounds：下注、領獎、開新回合、回合查詢
- admin：管理員查詢與轉移、事件列表
- ledger：內建 SQL 帳本（餘額、授權、發行）
"""
