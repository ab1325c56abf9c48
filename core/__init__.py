"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- RoundLedger：回合生命週期與獎金池的狀態機
- ParameterStore：回合參數（下注額、延長秒數、截止時間）的驗證與寫入
- AccessGuard：管理員權限檢查
- Locks：並發控制工具
"""
