"""iptables packet and byte counter input.

Lists each configured chain with ``iptables -nvL <chain> -t <table> -x`` and
turns every commented rule into one ``iptables`` metric::

    Chain INPUT (policy ACCEPT 58 packets, 5096 bytes)
        pkts      bytes target     prot opt in     out     source               destination
         100     1024   ACCEPT     tcp  --  *      *       0.0.0.0/0            0.0.0.0/0   tcp dpt:22 /* ssh */

Rules without a ``/* comment */`` are not reported.
"""

import re
import shutil
import subprocess
from typing import Callable, Optional

import structlog

from ..accumulator import Accumulator
from ..config import Config

logger = structlog.get_logger()

MEASUREMENT = "iptables"

CHAIN_NAME_RE = re.compile(r"^Chain\s+(\S+)")
FIELDS_HEADER_RE = re.compile(r"^\s*pkts\s+bytes\s+target")
VALUES_RE = re.compile(r"^\s*(\d+)\s+(\d+)\s+(\w+).*?/\*\s*(.+?)\s*\*/\s*")

MAX_COUNTER = 2**64 - 1

ChainLister = Callable[[str, str], str]


class IptablesError(Exception):
    """Base exception for iptables input errors."""
    pass


class IptablesParseError(IptablesError):
    """Chain listing did not have the expected layout."""

    def __init__(self, message: str = "cannot parse iptables list information"):
        super().__init__(message)


class IptablesInput:
    """Input gathering per-rule counters from iptables chains."""

    def __init__(
        self,
        table: str = "",
        chains: Optional[list[str]] = None,
        binary: str = "iptables",
        use_sudo: bool = False,
        use_lock: bool = False,
        lister: Optional[ChainLister] = None,
    ):
        """Initialize iptables input.

        Args:
            table: Table to list (filter, nat, mangle, ...)
            chains: Chains of the table to report
            binary: Name or path of the iptables binary
            use_sudo: Run the binary through sudo
            use_lock: Pass ``-w 5`` so iptables waits for the xtables lock
            lister: Replacement for running the binary, called as lister(table, chain)
        """
        self.table = table
        self.chains = list(chains or [])
        self.binary = binary
        self.use_sudo = use_sudo
        self.use_lock = use_lock
        self.lister: ChainLister = lister or self.chain_list

    @classmethod
    def from_config(cls, config: Config) -> "IptablesInput":
        """Build the input from agent configuration."""
        return cls(
            table=config.edge_iptables_table,
            chains=config.edge_iptables_chains,
            binary=config.edge_iptables_binary,
            use_sudo=config.edge_iptables_use_sudo,
            use_lock=config.edge_iptables_use_lock,
        )

    def gather(self, acc: Accumulator) -> None:
        """Gather counters for every configured chain.

        A chain that cannot be listed or parsed is reported to the
        accumulator and the remaining chains are still gathered.
        """
        if not self.table or not self.chains:
            return

        for chain in self.chains:
            try:
                data = self.lister(self.table, chain)
            except Exception as e:
                acc.add_error(e)
                continue

            try:
                self.parse_and_gather(data, acc)
            except IptablesParseError as e:
                logger.warning("Unexpected iptables output", table=self.table, chain=chain)
                acc.add_error(e)
                continue

    def build_command(self, binary_path: str, table: str, chain: str) -> list[str]:
        """Build the argv listing one chain with exact counters."""
        args = [binary_path]
        if self.use_sudo:
            args.insert(0, "sudo")
        if self.use_lock:
            args.extend(["-w", "5"])
        args.extend(["-nvL", chain, "-t", table, "-x"])
        return args

    def chain_list(self, table: str, chain: str) -> str:
        """Run iptables and return the raw listing of one chain."""
        binary = self.binary or "iptables"
        binary_path = shutil.which(binary)
        if binary_path is None:
            raise IptablesError(f"executable {binary!r} not found in PATH")

        command = self.build_command(binary_path, table, chain)
        logger.debug("Listing iptables chain", command=command)

        try:
            result = subprocess.run(command, capture_output=True, check=True)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise IptablesError(f"{' '.join(command)} exited with status {e.returncode}: {stderr}") from e
        except OSError as e:
            raise IptablesError(f"failed to run {' '.join(command)}: {e}") from e

        # Rule comments are arbitrary bytes
        return result.stdout.decode("utf-8", errors="replace")

    def parse_and_gather(self, data: str, acc: Accumulator) -> None:
        """Parse one chain listing and emit a metric per commented rule."""
        lines = data.split("\n")
        if len(lines) < 3:
            return

        chain_match = CHAIN_NAME_RE.match(lines[0])
        if chain_match is None:
            raise IptablesParseError()
        if not FIELDS_HEADER_RE.match(lines[1]):
            raise IptablesParseError()

        chain = chain_match.group(1)
        for line in lines[2:]:
            matches = VALUES_RE.match(line)
            if matches is None:
                continue

            pkts, nbytes, target, comment = matches.groups()
            pkts_val = int(pkts)
            bytes_val = int(nbytes)
            if pkts_val > MAX_COUNTER or bytes_val > MAX_COUNTER:
                logger.debug("Skipping rule with out of range counters", chain=chain, ruleid=comment)
                continue

            tags = {"table": self.table, "chain": chain, "target": target, "ruleid": comment}
            acc.add_fields(MEASUREMENT, {"pkts": pkts_val, "bytes": bytes_val}, tags)
