"""
辅料草稿

编辑辅料时未保存的行按动作 ID 暂存在用户 session 里，
flush 时走与已保存辅料相同的事务性保存。
"""
from flask import session
from cellar.services.production_service import ProductionService

SESSION_KEY = 'consumable_drafts'


class ConsumableDraftBook:
    """按动作 ID 分组的辅料草稿，存放在 Flask session 中"""

    def __init__(self, store=None):
        self._store = session if store is None else store

    def _drafts(self):
        return self._store.setdefault(SESSION_KEY, {})

    def _touch(self):
        # session 里的嵌套 dict 修改后需要显式标记
        if hasattr(self._store, 'modified'):
            self._store.modified = True

    def stage(self, action_id, item):
        """暂存一行辅料，返回该动作当前的草稿数"""
        drafts = self._drafts()
        rows = drafts.setdefault(str(action_id), [])
        rows.append({
            'name': item.get('name') or '',
            'unit': item.get('unit') or '',
            'quantity': item.get('quantity') or 0,
            'description': item.get('description') or '',
            'commodity': item.get('commodity'),
        })
        self._touch()
        return len(rows)

    def list(self, action_id):
        return list(self._drafts().get(str(action_id), []))

    def discard(self, action_id):
        removed = self._drafts().pop(str(action_id), [])
        self._touch()
        return len(removed)

    def flush(self, action):
        """把草稿写入数据库，成功后清空该动作的草稿"""
        rows = self.list(action.id)
        saved = ProductionService.save_consumables(action, rows)
        self.discard(action.id)
        return saved
