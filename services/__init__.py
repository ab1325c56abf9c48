"""
服務層

這個 package 包含不負責狀態轉換的輔助邏輯：
- LedgerService：外部帳本介面與內建 SQL 帳本
- EventService：事件記錄
- StateService：唯一資料列的初始化與讀取
- ClockService：可替換的時鐘
"""
