"""系统表名与演示数据常量"""

NOTEBOOK_LIST_TABLE = "seekinsight_notebook_list"
PUBLISHED_APPS_TABLE = "seekinsight_published_apps"
SHARE_SNAPSHOTS_TABLE = "seekinsight_share_snapshots"
USER_SETTINGS_TABLE = "seekinsight_user_settings"
SCHEMA_VERSION_TABLE = "seekinsight_schema_version"

DEMO_NOTEBOOK_ID = "demo_fitness_001"
DEMO_APP_ID = "demo_app_001"
DEMO_TABLE = "fitness_metrics"

# 新建笔记本随机图标
NOTEBOOK_ICONS = (
    "Database", "Zap", "Brain", "BarChart3", "Layers", "Boxes", "Cpu", "Activity",
    "LineChart", "PieChart", "Table", "FileText", "Globe", "Server", "Cloud", "Code2",
    "Terminal", "ShieldCheck", "Search", "Filter", "FolderGit2",
)
CLONE_ICON = "Copy"
EXTERNAL_ICON = "Plug"
DEFAULT_TOPIC = "Untitled"
CLONE_TOPIC = "Cloned Notebook"
EXTERNAL_TOPIC = "External Database"
