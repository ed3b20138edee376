# -*- coding: utf-8 -*-
"""
Prompt 文本
各交互模式的 system prompt 与 user 消息模板
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config


# ==========================================
# System Prompts
# ==========================================

# 一次性完整回答
STANDALONE_SYSTEM_PROMPT = (
    "You are an assistant that helps users with computer tasks. "
    "I'll provide a screenshot of the user's current desktop and their query. "
    "Provide clear, step-by-step instructions on how to accomplish the task on {platform}, "
    "referencing the visible elements in the screenshot when relevant. "
    "Format your response in markdown with numbered steps. Be concise but thorough."
)

# 分步模式：每次只给一步 (第一步 / 下一步 / 提问 共用)
STEP_SYSTEM_PROMPT = (
    "You are an assistant that helps users with computer tasks step by step. "
    "I'll provide a screenshot of the user's current desktop and their query. "
    "Provide ONLY THE NEXT SINGLE STEP to accomplish their task on {platform}. "
    "Be concise but clear. Format your response in markdown. "
    "DO NOT provide multiple steps or the complete solution - JUST ONE STEP AT A TIME."
)


# ==========================================
# User Message Templates
# ==========================================

STANDALONE_USER_TEMPLATE = (
    "Here is the user's query that you must respond to: {query}. "
    "Here is a screenshot of the user's current screen for context."
)

FIRST_STEP_USER_TEMPLATE = (
    "Here is the user's request: {query}. Provide ONLY THE FIRST STEP. "
    "Here is a screenshot of the user's current screen."
)

FOLLOW_UP_USER_TEMPLATE = (
    "Here is the follow-up step request: {text}. "
    "Here is the current screenshot for context."
)

# ==========================================
# Follow-up Prompts (由对话控制器生成)
# ==========================================

NEXT_STEP_PROMPT = (
    "Provide the NEXT STEP (Step {step}) for the task: \"{query}\". "
    "Based on the new screenshot, determine what progress has been made and what the user should do next. "
    "Provide ONLY ONE CLEAR, CONCISE STEP - do not list multiple steps or the complete solution. "
    "Tell the user exactly what you see and give them the next step."
)

QUESTION_PROMPT = (
    "The user is working on: \"{query}\" and has a question: \"{question}\". "
    "Based on the screenshot and their question, provide a helpful answer FOLLOWED BY the next step they should take. "
    "Be concise but clear and answer their specific question first."
)


def _platform() -> str:
    return getattr(config, 'TARGET_PLATFORM', "the user's computer")


def get_standalone_system_prompt() -> str:
    return STANDALONE_SYSTEM_PROMPT.format(platform=_platform())


def get_step_system_prompt() -> str:
    return STEP_SYSTEM_PROMPT.format(platform=_platform())


def build_next_step_prompt(step: int, query: str) -> str:
    """第 N 步的追问文本"""
    return NEXT_STEP_PROMPT.format(step=step, query=query)


def build_question_prompt(query: str, question: str) -> str:
    """任务中途提问的文本"""
    return QUESTION_PROMPT.format(query=query, question=question)
