# Screen Guide - Configuration

import os
import platform

# ====================
# Paths
# ====================
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
LOG_DIR = os.path.join(BASE_DIR, "logs")

# ====================
# Chat Completion API (OpenAI 格式)
# ====================
LLM_API_BASE = os.environ.get("GUIDE_API_BASE", "https://api.openai.com/v1")
LLM_API_KEY = os.environ.get("OPENAI_API_KEY", "")  # 也可以用 --api-key 传入
LLM_MODEL = os.environ.get("GUIDE_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = 0.7
LLM_TIMEOUT = None  # None = 不设超时，由调用方决定

# ====================
# Screenshot Settings
# ====================
SCREENSHOT_MAX_SIZE = None       # 最大边长 (像素)，None = 原始分辨率
SCREENSHOT_QUALITY = 70          # JPEG 起始质量
SCREENSHOT_MIN_QUALITY = 30      # 最低质量，低于此值放弃
SCREENSHOT_QUALITY_STEP = 10     # 每次降低的质量

# 截屏前等待 (秒)，留时间让用户切换到目标窗口
CAPTURE_DELAY = 2.0

# ====================
# Prompt Settings
# ====================
# 写进 system prompt 的操作系统名称
TARGET_PLATFORM = {
    "Darwin": "macOS",
    "Windows": "Windows",
    "Linux": "Linux",
}.get(platform.system(), platform.system() or "the user's computer")

# ====================
# Debug
# ====================
# 保存截图和请求/响应记录到 debug/ 目录 (用于后期分析)
DEBUG_SAVE_ARTIFACTS = False
DEBUG_DIR = os.path.join(BASE_DIR, "debug")
