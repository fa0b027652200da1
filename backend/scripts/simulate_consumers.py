"""消费模拟脚本 - 用内存数据源压测 TaskManager

启动一次运行（2000 条测试商品），5 个 agent 每 200ms 各领取 12 条，
持续 10 秒，期间打印统计快照。

使用方法：
    python scripts/simulate_consumers.py
    python scripts/simulate_consumers.py --agents 8 --size 20 --duration 5
"""

import argparse
import asyncio
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from taskhub.dispatch.manager import TaskManager
from taskhub.dispatch.sources import InMemoryBatchSource
from taskhub.services.kv_store import InMemoryKeyValueStore
from taskhub.services.task_service import TaskService

console = Console()


def render_stats(stats: dict) -> Table:
    """统计快照渲染为表格"""
    table = Table(title=f"status: {stats['status']}", show_header=False)
    event = stats["current_event"]
    table.add_row("started", str(event["started"]))
    table.add_row("finished", str(event["finished"]))
    table.add_row("exhausted", str(event["exhausted"]))
    table.add_row("elapsed", event["elapsed"])
    table.add_row("next_event", str(stats["next_event"]))
    for key, value in stats["count"].items():
        table.add_row(key, str(value))
    table.add_row("fetch", f"{stats['throughput']['fetch']} processed/sec")
    table.add_row("consume", f"{stats['throughput']['consume']} processed/sec")
    return table


async def consume(service: TaskService, agent: str, size: int, interval: float) -> int:
    """单个 agent 循环领取，直到被取消"""
    total = 0
    try:
        while True:
            tasks = await service.request_tasks(agent, size)
            total += len(tasks)
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        return total


async def main(args: argparse.Namespace) -> None:
    manager = TaskManager(InMemoryBatchSource.synthetic)
    service = TaskService(manager, InMemoryKeyValueStore())

    await manager.force_trigger(InMemoryBatchSource.synthetic(args.items))

    workers = [
        asyncio.create_task(consume(service, f"agent{num}", args.size, args.interval))
        for num in range(1, args.agents + 1)
    ]

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration
    while loop.time() < deadline:
        await asyncio.sleep(1)
        console.print(render_stats(service.get_stats()))

    for worker in workers:
        worker.cancel()
    totals = await asyncio.gather(*workers)

    for num, total in enumerate(totals, start=1):
        console.print(f"agent{num}: {total} items")
    await manager.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="模拟多个 agent 领取任务")
    parser.add_argument("--items", type=int, default=2000, help="测试商品条数")
    parser.add_argument("--agents", type=int, default=5, help="agent 数量")
    parser.add_argument("--size", type=int, default=12, help="每次领取条数")
    parser.add_argument("--interval", type=float, default=0.2, help="领取间隔（秒）")
    parser.add_argument("--duration", type=float, default=10.0, help="持续时间（秒）")

    try:
        asyncio.run(main(parser.parse_args()))
    except KeyboardInterrupt:
        sys.exit(1)
