# -*- coding: utf-8 -*-
"""
Screen Guide - Main Entry
命令行入口：截屏 + 提问，流式输出回答
"""

import sys
import os
import asyncio
import argparse

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
import config


# 配置 loguru
logger.remove()
logger.add(
    sys.stderr,
    level="DEBUG" if "--debug" in sys.argv or "-d" in sys.argv else "INFO",
    format="<green>{time:HH:mm:ss}</green> | <cyan>{name:>12}</cyan> | <level>{message}</level>"
)
logger.add(
    os.path.join(config.LOG_DIR, "guide_{time:YYYY-MM-DD}.log"),
    level="DEBUG",
    rotation="1 day",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}"
)


STEP_HELP = "[回车/n] 下一步  [? 问题] 提问  [r] 重置  [q] 退出"


async def ainput(prompt: str = "") -> str:
    """在线程池中读取输入（避免阻塞事件循环）"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: input(prompt))


def print_chunk(chunk: str) -> None:
    print(chunk, end="", flush=True)


async def run_interaction(controller, trigger, delay: float) -> bool:
    """等待 delay 秒后触发一次交互，直到回答结束"""
    if delay > 0:
        print(f"\n⏳ {delay:.0f} 秒后截屏，请切换到需要操作的窗口...")
        await asyncio.sleep(delay)

    if not trigger():
        print("⚠️ 当前无法开始新的请求")
        return False

    await controller.wait()
    state = controller.state
    print()
    if state.error:
        print(f"❌ Error: {state.error}")
        return False
    return True


async def run_standalone(controller, query: str, delay: float) -> int:
    ok = await run_interaction(controller, lambda: controller.ask(query), delay)
    return 0 if ok else 1


async def run_steps(controller, query: str, delay: float) -> int:
    """分步模式交互循环"""
    if not query:
        query = (await ainput("要完成什么任务？ ")).strip()

    await run_interaction(controller, lambda: controller.start_task(query), delay)

    while True:
        state = controller.state
        if state.task_active:
            print(f"\n--- Step {state.step_number} of task: {state.query} ---")
        print(STEP_HELP)
        command = (await ainput("> ")).strip()

        if command in ("q", "quit"):
            return 0

        if command == "r":
            controller.reset()
            query = (await ainput("要完成什么任务？ ")).strip()
            if query:
                await run_interaction(controller, lambda: controller.start_task(query), delay)
            continue

        if controller.state.error:
            print("⚠️ 上一步出错了，输入 r 重置")
            continue

        if command.startswith("?"):
            question = command[1:].strip()
            await run_interaction(controller, lambda: controller.ask_question(question), delay)
        elif command in ("", "n", "next"):
            await run_interaction(controller, controller.next_step, delay)
        else:
            print(f"未知命令: {command}")


def main():
    """主入口"""
    parser = argparse.ArgumentParser(description="Screen Guide - 看着你的屏幕回答\"怎么操作\"")
    parser.add_argument("query", nargs="*", help="要问的问题 / 要完成的任务")
    parser.add_argument(
        "--steps",
        action="store_true",
        help="分步模式：每次只给一步，根据新截图继续"
    )
    parser.add_argument("--api-key", default=None, help="API Key (默认读取 OPENAI_API_KEY)")
    parser.add_argument("--model", default=None, help=f"模型 (默认 {config.LLM_MODEL})")
    parser.add_argument(
        "--delay",
        type=float,
        default=config.CAPTURE_DELAY,
        help="截屏前等待的秒数"
    )
    parser.add_argument(
        "--save-debug",
        action="store_true",
        help="保存截图和请求/响应记录到 debug 目录"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="启用 debug 模式"
    )
    args = parser.parse_args()

    api_key = args.api_key or config.LLM_API_KEY
    if not api_key:
        logger.error("❌ 没有 API Key，请设置 OPENAI_API_KEY 或使用 --api-key")
        return 2

    query = " ".join(args.query).strip()
    if not query and not args.steps:
        parser.error("需要提供问题，或使用 --steps 进入分步模式")

    from diagnostics import get_event_bus
    from llm.prompt_builder import ChatRequestBuilder
    from core import ConversationController, DebugRecorder

    events = get_event_bus()
    if args.save_debug or config.DEBUG_SAVE_ARTIFACTS:
        DebugRecorder(events).start()

    controller = ConversationController(
        api_key=api_key,
        builder=ChatRequestBuilder(model=args.model or config.LLM_MODEL),
        events=events,
    )
    controller.on_chunk = print_chunk

    try:
        if args.steps:
            return asyncio.run(run_steps(controller, query, args.delay))
        return asyncio.run(run_standalone(controller, query, args.delay))
    except (KeyboardInterrupt, EOFError):
        print("\n\n已退出")
        return 130


if __name__ == "__main__":
    sys.exit(main())
