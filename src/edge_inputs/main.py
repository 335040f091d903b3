"""Main entry point: run one gather of every enabled input."""

import logging
import sys
from typing import Any, Protocol

import structlog

from . import __version__
from .accumulator import Accumulator, MetricAccumulator
from .config import Config, get_config
from .exposition import format_line_protocol, format_prometheus
from .inputs import IptablesInput, NginxPlusInput


class Input(Protocol):
    def gather(self, acc: Accumulator) -> None:
        ...


def setup_logging(log_level: str) -> None:
    """Set up structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Metrics go to stdout, logs to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def build_inputs(config: Config) -> dict[str, Input]:
    """Instantiate every input that has something configured."""
    inputs: dict[str, Input] = {}
    if config.iptables_enabled:
        inputs["iptables"] = IptablesInput.from_config(config)
    if config.nginx_plus_enabled:
        inputs["nginx_plus"] = NginxPlusInput.from_config(config)
    return inputs


def run_once(inputs: dict[str, Input], acc: MetricAccumulator) -> None:
    """Gather every input once into ``acc``."""
    logger = structlog.get_logger()

    for name, plugin in inputs.items():
        logger.info("Gathering input", input=name)
        try:
            plugin.gather(acc)
        except Exception as e:
            logger.error("Input gather failed", input=name, error=str(e), exc_info=True)
            acc.add_error(e)


def render(config: Config, acc: MetricAccumulator) -> str:
    """Render accumulated metrics in the configured output format."""
    metrics = acc.get_metrics()
    if config.edge_output_format == "prometheus":
        return format_prometheus(metrics)
    return format_line_protocol(metrics)


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = get_config()
    except Exception:
        sys.exit(1)

    # Setup logging
    setup_logging(config.edge_log_level)
    logger = structlog.get_logger()

    inputs = build_inputs(config)
    logger.info("Starting edge inputs", version=__version__, inputs=sorted(inputs))

    if not inputs:
        logger.warning("No input configured, nothing to gather")
        sys.exit(0)

    acc = MetricAccumulator()
    run_once(inputs, acc)

    for plugin in inputs.values():
        close: Any = getattr(plugin, "close", None)
        if close is not None:
            close()

    sys.stdout.write(render(config, acc))
    sys.stdout.flush()

    logger.info("Gather complete", metric_count=len(acc.metrics), error_count=len(acc.errors))
    sys.exit(1 if acc.errors else 0)


if __name__ == "__main__":
    main()
