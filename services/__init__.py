"""
服務層

這個 package 包含純計算與資料存取邏輯，不負責狀態轉換：
- LedgerService：參與者帳本
- SelectionService：得獎者選擇
- HistoryService：得獎紀錄
- PayoutService：轉帳與待領獎金
- EventService：事件紀錄
"""
