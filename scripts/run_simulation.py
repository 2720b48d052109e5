# scripts/run_simulation.py

import argparse
import sys

from image_cache.config import Settings
from image_cache.logger import setup_logging, get_logger
from image_cache.simulator import Simulator
from image_cache.visualizer import SimulationVisualizer

logger = get_logger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Запуск DES-симуляции кеша изображений с заданным конфигом"
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        type=str,
        default=None,
        help="Путь до YAML-конфига (по умолчанию: CONFIG_PATH или config/default.yaml)"
    )
    parser.add_argument(
        "--plot",
        metavar="PNG",
        type=str,
        default=None,
        help="Сохранить графики в PNG (вместо окна, заданного output.plot)"
    )
    return parser.parse_args()


def main():
    args = parse_args()

    # Загрузка конфига
    settings = Settings.load(path=args.config)

    # Настройка логирования (файл + консоль)
    setup_logging(settings)
    logger.info("Loaded settings and configured logging")

    # Запуск симуляции
    sim = Simulator(settings)
    payload = sim.run()

    # Печать сводки
    print("\n=== Image Cache Summary ===")
    for k, v in payload["summary"].items():
        print(f"{k:24}: {v}")
    print(f"{'source_calls':24}: {payload['source_calls']}")

    viz = SimulationVisualizer(payload)
    if args.plot:
        viz.save(args.plot)
        logger.info(f"Plots saved to {args.plot}")
    elif settings.output and settings.output.plot:
        viz.show_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
