"""
分类配置服务 (Category Configuration Service)

分类 → 子分类列表的自由配置，保存在全局 config.json 中；未配置时返回默认分类。
"""
import copy

from studynotes.core.storage import CONFIG_LOCK, RecordStore
from studynotes.core.timeutil import utcnow_iso

DEFAULT_CATEGORIES = {
    "申论": {
        "name": "申论",
        "icon": "fas fa-file-alt",
        "subcategories": ["概括归纳", "提出对策", "分析原因", "综合分析", "公文写作", "大作文"],
    },
    "行测": {
        "name": "行测",
        "icon": "fas fa-calculator",
        "subcategories": ["政治常识", "常识", "言语", "数量", "判断", "资料"],
    },
}


async def get_categories(store: RecordStore) -> dict:
    config = await store.read_config()
    categories = config.get("categories")
    if not isinstance(categories, dict) or not categories:
        return copy.deepcopy(DEFAULT_CATEGORIES)
    return categories


async def save_categories(store: RecordStore, categories: dict, updated_by: str) -> dict:
    """保存分类配置，保留配置文件中的其他字段 (Save categories, keeping other config keys)"""
    async with store.locked(CONFIG_LOCK):
        config = await store.read_config()
        config["categories"] = categories
        config["updatedAt"] = utcnow_iso()
        config["updatedBy"] = updated_by
        await store.write_config(config)
    return categories
