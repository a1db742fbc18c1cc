#!/usr/bin/python3

### Simple-Stupid user-space daemon periodically cleaning swap on a linux host.
### When there is enough free memory and the load is acceptable, all
### swapped pages are forced back into RAM by doing "swapoff -a" followed
### by "swapon -a".

__version__ = "0.0.2"
__author__ = "ESSENTIAL KAOS"
__copyright__ = "Copyright 2024-2026, ESSENTIAL KAOS"
__license__ = "Apache-2.0"
__email__ = "info@essentialkaos.com"
__product__ = "swap-reaper"

import argparse
import configparser
import json
import logging
import logging.handlers
import os
import platform
import signal
import subprocess
import sys
import time
from collections import namedtuple
from os import getenv

# Optional imports with graceful fallback
try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

try:
    import tomllib  # Python 3.11+

    HAS_TOML = True
except ImportError:
    try:
        import tomli as tomllib  # Fallback for older Python

        HAS_TOML = True
    except ImportError:
        HAS_TOML = False


## The decision loop runs once per minute, cleaning is never scheduled more often
TICK_INTERVAL = 60

MEMINFO_FILE = "/proc/meminfo"
LOADAVG_FILE = "/proc/loadavg"
SWAPPINESS_FILE = "/proc/sys/vm/swappiness"

SWAPOFF_COMMAND = ["swapoff", "-a"]
SWAPON_COMMAND = ["swapon", "-a"]

## recommended vm.swappiness is 5-30
SWAPPINESS_WARN_LEVEL = 30


#########################
## Errors
#########################


class SwapReaperError(Exception):
    """Base class for all errors raised by swap-reaper."""


class ConfigError(SwapReaperError):
    pass


class ProbeError(SwapReaperError):
    """Reading some kernel interface failed.

    Those errors are expected to be transient - the decision loop logs them
    and tries again on the next tick.
    """

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__("can't read %s: %s" % (path, reason))


class SwapCycleError(SwapReaperError):
    """One of the swapoff/swapon steps failed.

    step is the failed command name, exit_code is None if the command
    could not be launched at all or was killed after a timeout.
    """

    def __init__(self, step, exit_code=None, reason=None, stalled=False):
        self.step = step
        self.exit_code = exit_code
        self.reason = reason
        self.stalled = stalled
        super().__init__(self._describe())

    @property
    def critical(self):
        """True if the failure may have left (some) swap disabled."""
        return self.step == SWAPON_COMMAND[0] or self.stalled

    def _describe(self):
        if self.step == SWAPOFF_COMMAND[0]:
            action = "can't disable swap using swapoff"
        else:
            action = "can't enable swap back using swapon"
        if self.stalled:
            return "%s: %s did not finish within %s" % (action, self.step, self.reason)
        if self.exit_code is None:
            return "%s: failed to run %s (%s)" % (action, self.step, self.reason)
        return "%s: %s exited with code %d" % (action, self.step, self.exit_code)


#########################
## Configuration section
#########################

# Default config file search paths (in order of preference)
CONFIG_SEARCH_PATHS = [
    "/etc/swap-reaper.yaml",
    "/etc/swap-reaper.yml",
    "/etc/swap-reaper.toml",
    "/etc/swap-reaper.json",
    "/etc/swap-reaper.conf",
    "/etc/swap-reaper.knf",
]

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
}


def _parse_bool(value):
    """Parse boolean from string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    return str(value).lower() in ("true", "yes", "1", "on")


def _parse_str(value):
    if value is None:
        return ""
    return str(value).strip()


# Each entry: config_key -> (type_converter, env_var_name, file_key_aliases)
CONFIG_SCHEMA = {
    "max_la": (float, "SWAP_REAPER_MAX_LA", ["max-la"]),
    "max_wait": (int, "SWAP_REAPER_MAX_WAIT", ["max-wait"]),
    "high_la_delay": (_parse_bool, "SWAP_REAPER_HIGH_LA_DELAY", ["high-la-delay"]),
    "command_timeout": (float, "SWAP_REAPER_COMMAND_TIMEOUT", ["command-timeout"]),
    "log_dir": (_parse_str, "SWAP_REAPER_LOG_DIR", ["log-dir"]),
    "log_file": (_parse_str, "SWAP_REAPER_LOG_FILE", ["log-file"]),
    "log_level": (_parse_str, "SWAP_REAPER_LOG_LEVEL", ["log-level"]),
}

## Sections of the classic config layout, [limits] and [log]
SECTION_PREFIXES = {
    "limits": "",
    "log": "log_",
}


def _flatten_sections(data):
    """Lift the [limits] and [log] sections to top level keys.

    "max-la" in [limits] becomes "max_la", "level" in [log] becomes "log_level".
    Keys given at top level win over the sectioned ones.

    In the classic layout [limits] max-wait is given in minutes.
    """
    flat = {}
    for section, prefix in SECTION_PREFIXES.items():
        values = data.get(section)
        if isinstance(values, dict):
            for key, value in values.items():
                key = prefix + key.replace("-", "_")
                if key == "max_wait":
                    try:
                        value = int(value) * 60
                    except (ValueError, TypeError) as e:
                        raise ConfigError(f"Invalid value for [{section}] max-wait: {value} - {e}") from e
                flat[key] = value
    for key, value in data.items():
        if key not in SECTION_PREFIXES:
            flat[key] = value
    return flat


def load_from_file(path=None):
    """Load configuration from file (auto-detect format by extension).

    A missing or broken file given explicitly is a ConfigError, files from
    the search path are skipped with a warning.
    """
    if path:
        if not os.path.exists(path):
            raise ConfigError("can't load configuration: %s does not exist" % path)
        try:
            return _load_any(path)
        except Exception as e:
            raise ConfigError("can't load configuration from %s: %s" % (path, e)) from e

    for filepath in CONFIG_SEARCH_PATHS:
        if not os.path.exists(filepath):
            continue
        try:
            return _load_any(filepath)
        except ImportError as e:
            logging.warning(f"Config format not supported for {filepath}: {e}")
            continue
        except Exception as e:
            logging.warning(f"Failed to load config from {filepath}: {e}")
            continue
    return {}


def _load_any(filepath):
    ext = os.path.splitext(filepath)[1].lower()
    if ext in (".yaml", ".yml"):
        data = _load_yaml(filepath)
    elif ext == ".toml":
        data = _load_toml(filepath)
    elif ext == ".json":
        data = _load_json(filepath)
    else:  # .conf, .ini, .knf or unknown
        data = _load_ini(filepath)
    return _flatten_sections(data)


def _load_yaml(path):
    """Load YAML config file."""
    if not HAS_YAML:
        raise ImportError("PyYAML not installed - install with: pip install PyYAML")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return data.get("swap-reaper", data)


def _load_toml(path):
    """Load TOML config file."""
    if not HAS_TOML:
        raise ImportError("TOML support not available - install tomli (Python <3.11) or use Python 3.11+")
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data.get("swap-reaper", data)


def _load_json(path):
    """Load JSON config file."""
    with open(path) as f:
        data = json.load(f)
    return data.get("swap-reaper", data)


def _load_ini(path):
    """Load INI config file."""
    parser = configparser.ConfigParser()
    parser.read(path)
    data = {}
    for section in SECTION_PREFIXES:
        if section in parser:
            data[section] = dict(parser[section])
    if "swap-reaper" in parser:
        data.update(parser["swap-reaper"])
    return data


def load_from_env():
    """Load configuration from environment variables."""
    env_config = {}

    for config_key, (converter, env_var, _) in CONFIG_SCHEMA.items():
        value = getenv(env_var)
        if value is not None:
            try:
                env_config[config_key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    return env_config


def get_defaults():
    """Get default configuration values."""
    return {
        "max_la": 2.0,
        "max_wait": 600,
        "high_la_delay": None,  # Computed from max_wait if not set
        "command_timeout": 0.0,  # No timeout
        "log_dir": "",
        "log_file": "",  # Log to stderr
        "log_level": "info",
        "debug_logging": False,
    }


def normalize_file_config(file_config):
    """Normalize config keys and values from file config.

    Handles underscore/hyphen differences and type conversions.
    """
    normalized = {}

    file_key_to_config = {}
    for config_key, (_, _, aliases) in CONFIG_SCHEMA.items():
        for alias in aliases:
            file_key_to_config[alias] = config_key

    for key, value in file_config.items():
        norm_key = file_key_to_config.get(key, key.replace("-", "_"))

        if norm_key in CONFIG_SCHEMA:
            converter = CONFIG_SCHEMA[norm_key][0]
            try:
                normalized[norm_key] = converter(value)
            except (ValueError, TypeError) as e:
                raise ConfigError(f"Invalid value for config key {key}: {value} - {e}") from e
        else:
            logging.warning(f"Unknown config key {key} ignored")

    return normalized


def load_config(args):
    """Merge config from defaults <- file <- env <- CLI."""
    final = get_defaults()

    config_path = getattr(args, "config", None)
    file_config = load_from_file(config_path)
    if file_config:
        final.update(normalize_file_config(file_config))

    final.update(load_from_env())

    for config_key in list(CONFIG_SCHEMA) + ["debug_logging"]:
        value = getattr(args, config_key, None)
        if value is not None:
            final[config_key] = value

    ## The load check used to be switched off whenever max_wait happened to
    ## be exactly one tick.  Keep that as the default for the named flag.
    if final.get("high_la_delay") is None:
        final["high_la_delay"] = final["max_wait"] != TICK_INTERVAL

    if final["log_dir"] and final["log_file"] and not os.path.isabs(final["log_file"]):
        final["log_file"] = os.path.join(final["log_dir"], final["log_file"])

    return final


def validate_config(cfg):
    """Raise ConfigError for the first invalid value found."""
    if not cfg["max_la"] > 0.1:
        raise ConfigError("max-la must be greater than 0.1 (got %s)" % cfg["max_la"])
    if not 1 < cfg["max_wait"] < 24 * 3600:
        raise ConfigError("max-wait must be between 1 and 86400 seconds (got %s)" % cfg["max_wait"])
    if cfg["command_timeout"] < 0:
        raise ConfigError("command-timeout can't be negative (got %s)" % cfg["command_timeout"])
    if cfg["log_level"].lower() not in LOG_LEVELS:
        raise ConfigError(
            "log-level must be one of %s (got %s)" % (", ".join(LOG_LEVELS), cfg["log_level"])
        )
    if cfg["log_file"]:
        log_dir = os.path.dirname(os.path.abspath(cfg["log_file"]))
        if not os.path.isdir(log_dir) or not os.access(log_dir, os.W_OK | os.X_OK):
            raise ConfigError("log directory %s is not writable" % log_dir)


def create_argument_parser():
    """Create argument parser with all configuration options."""
    p = argparse.ArgumentParser(
        prog=__product__,
        description="Service to periodically clean swap memory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration priority (highest to lowest):
  1. Command-line arguments
  2. Environment variables (SWAP_REAPER_*)
  3. Config file (--config or auto-detected)
  4. Built-in defaults

Config file search order (first found is used):
  /etc/swap-reaper.yaml
  /etc/swap-reaper.yml
  /etc/swap-reaper.toml
  /etc/swap-reaper.json
  /etc/swap-reaper.conf
  /etc/swap-reaper.knf  ([limits] max-wait in minutes)

Example usage:
  swap-reaper
  swap-reaper --max-la=4 --max-wait=900
  swap-reaper --config=/path/to/config.yaml
""",
    )

    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--verbose-version",
        dest="verbose_version",
        action="store_true",
        help="Show version together with information about the system",
    )

    p.add_argument(
        "--config",
        "-c",
        metavar="PATH",
        help="Configuration file path (auto-detects format by extension)",
    )

    # Limits
    p.add_argument(
        "--max-la",
        dest="max_la",
        type=float,
        metavar="LA",
        help="One minute load average at which cleaning is delayed (default: 2.0)",
    )
    p.add_argument(
        "--max-wait",
        dest="max_wait",
        type=int,
        metavar="SECONDS",
        help="Maximum time cleaning can be delayed because of high load (default: 600)",
    )
    p.add_argument(
        "--high-la-delay",
        dest="high_la_delay",
        action="store_true",
        default=None,
        help="Delay cleaning while the load is high (default: true unless max-wait is 60)",
    )
    p.add_argument(
        "--no-high-la-delay",
        dest="high_la_delay",
        action="store_false",
        help="Clean regardless of the system load",
    )
    p.add_argument(
        "--command-timeout",
        dest="command_timeout",
        type=float,
        metavar="SECONDS",
        help="Kill swapoff/swapon if it runs longer than this, 0 disables (default: 0)",
    )

    # Logging
    p.add_argument(
        "--log-file",
        dest="log_file",
        metavar="PATH",
        help="Log file path (default: log to stderr)",
    )
    p.add_argument(
        "--log-level",
        dest="log_level",
        choices=list(LOG_LEVELS),
        type=str.lower,
        help="Minimal log level (default: info)",
    )
    p.add_argument(
        "--debug",
        dest="debug_logging",
        action="store_true",
        default=None,
        help="Enable debug logging",
    )

    return p


class config:
    """
    Configuration namespace - populated at startup by init_config().

    Access configuration values as config.max_la, config.max_wait, etc.
    """

    pass


def init_config(args=None):
    """Initialize the config namespace from all configuration sources.

    This should be called once at startup, after argument parsing.
    """
    if args is None:
        args = argparse.Namespace()

    cfg = load_config(args)
    validate_config(cfg)

    for key, value in cfg.items():
        setattr(config, key, value)
    return cfg


def _init_default_config():
    """Initialize config with defaults for module import compatibility."""
    defaults = get_defaults()
    defaults["high_la_delay"] = defaults["max_wait"] != TICK_INTERVAL
    for key, value in defaults.items():
        setattr(config, key, value)


_init_default_config()


#########################
## Logging
#########################

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

## the handler installed by setup_logging()
log_handler = None


def setup_logging(cfg):
    """Configure the root logger from the configuration dict."""
    global log_handler
    if cfg.get("log_file"):
        handler = logging.handlers.WatchedFileHandler(cfg["log_file"], mode="a")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    if log_handler:
        logging.root.removeHandler(log_handler)
        log_handler.close()
    log_handler = handler
    logging.root.addHandler(handler)

    if cfg.get("debug_logging"):
        logging.root.setLevel(logging.DEBUG)
    else:
        logging.root.setLevel(LOG_LEVELS[cfg["log_level"].lower()])


def reopen_log():
    """Reopen the log file, to be used after logrotate has moved it."""
    handler = log_handler
    if not isinstance(handler, logging.handlers.WatchedFileHandler):
        return
    handler.acquire()
    try:
        handler.reopenIfNeeded()
    finally:
        handler.release()


def pretty_size(size):
    """Human readable size, 1536 -> '1.5KB'."""
    size = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024 or unit == "TB":
            break
        size /= 1024
    if unit == "B":
        return "%dB" % size
    return "%.1f%s" % (size, unit)


def pretty_perc(value):
    return ("%.1f" % value).rstrip("0").rstrip(".") + "%"


def short_duration(seconds):
    """Short duration, 3.25 -> '3.25s', 125 -> '2m 5s'."""
    if seconds < 60:
        return "%.2fs" % seconds
    minutes, seconds = divmod(int(seconds), 60)
    if minutes < 60:
        return "%dm %ds" % (minutes, seconds)
    hours, minutes = divmod(minutes, 60)
    return "%dh %dm" % (hours, minutes)


#########################
## System probes
#########################

MemorySample = namedtuple("MemorySample", ["mem_total", "mem_used", "swap_total", "swap_used"])
LoadSample = namedtuple("LoadSample", ["min1", "min5", "min15"])


def read_meminfo():
    """Read /proc/meminfo into a dict of field -> kB."""
    fields = {}
    with open(MEMINFO_FILE) as f:
        for line in f:
            parts = line.split()
            if len(parts) >= 2:
                fields[parts[0].rstrip(":")] = int(parts[1])
    return fields


def get_memory_sample():
    """Current memory and swap usage in bytes.

    "Used" memory excludes buffers and reclaimable caches, as those would be
    dropped anyway when the swapped pages are moved back.
    """
    try:
        info = read_meminfo()
        mem_total = info["MemTotal"]
        mem_free = info["MemFree"] + info.get("Buffers", 0) + info.get("Cached", 0) + info.get("SReclaimable", 0)
        swap_total = info["SwapTotal"]
        swap_used = swap_total - info["SwapFree"]
    except (OSError, ValueError) as e:
        raise ProbeError(MEMINFO_FILE, e) from e
    except KeyError as e:
        raise ProbeError(MEMINFO_FILE, "field %s is missing" % e) from e
    return MemorySample(
        mem_total=mem_total * 1024,
        mem_used=max(mem_total - mem_free, 0) * 1024,
        swap_total=swap_total * 1024,
        swap_used=max(swap_used, 0) * 1024,
    )


def get_load_sample():
    """Load averages for the last 1, 5 and 15 minutes."""
    try:
        with open(LOADAVG_FILE) as f:
            fields = f.readline().split()
        return LoadSample(float(fields[0]), float(fields[1]), float(fields[2]))
    except (OSError, ValueError, IndexError) as e:
        raise ProbeError(LOADAVG_FILE, e) from e


def get_swappiness():
    """The vm.swappiness kernel parameter."""
    try:
        with open(SWAPPINESS_FILE) as f:
            swappiness = int(f.read().strip())
    except (OSError, ValueError) as e:
        raise ProbeError(SWAPPINESS_FILE, e) from e
    ## newer kernels allow up to 200, anything above 100 means "swap first"
    if swappiness < 0:
        raise ProbeError(SWAPPINESS_FILE, "unexpected value %d" % swappiness)
    return min(swappiness, 100)


#########################
## Threshold policy
#########################


def compute_watermark(mem_total, swappiness):
    """Maximum amount of used memory + used swap that is safe to clean.

    Moving swapped pages back needs headroom, so the part of the memory the
    kernel is willing to keep swapped out (swappiness percent) is kept free.
    """
    return mem_total - swappiness / 100.0 * mem_total


def is_safe_to_clean(mem_used, swap_used, watermark):
    return mem_used + swap_used <= watermark


def has_swap_to_clean(swap_used):
    return swap_used > 0


#########################
## Swap cycling
#########################


def run_command(args, timeout=None):
    """Run a command and return its exit code.

    Raises OSError if the command can't be started and
    subprocess.TimeoutExpired if it runs for longer than timeout.
    """
    logging.debug("running %s" % " ".join(args))
    return subprocess.run(args, stdin=subprocess.DEVNULL, timeout=timeout).returncode


class SwapCycler:
    """Disables and re-enables all swap, forcing the kernel to move the
    swapped pages back into memory.

    runner is a callable (args, timeout) -> exit code, see run_command.
    """

    def __init__(self, runner=None, timeout=None):
        self.runner = runner or run_command
        self.timeout = timeout or None

    def clean_swap(self):
        """Returns None on success, or a SwapCycleError describing the failure.

        swapon is never attempted if swapoff failed.
        """
        error = self._run_step(SWAPOFF_COMMAND)
        if error:
            return error
        return self._run_step(SWAPON_COMMAND)

    def _run_step(self, command):
        step = command[0]
        try:
            exit_code = self.runner(command, self.timeout)
        except subprocess.TimeoutExpired:
            return SwapCycleError(step, reason=short_duration(self.timeout), stalled=True)
        except OSError as e:
            return SwapCycleError(step, reason=e)
        if exit_code != 0:
            return SwapCycleError(step, exit_code=exit_code)
        return None


#########################
## Decision loop
#########################

## Tick outcomes
TICK_PROBE_ERROR = "probe-error"
TICK_NO_SWAP = "no-swap"
TICK_NO_HEADROOM = "no-headroom"
TICK_LOAD_ERROR = "load-error"
TICK_DEFERRED = "deferred"
TICK_CLEANED = "cleaned"
TICK_CLEAN_FAILED = "clean-failed"


class SwapReaperState:
    """Runtime state of swap-reaper.

    Holds the cached watermark and the start of the current high load
    episode (pending_since, None when no cleaning is being delayed).
    """

    def __init__(
        self,
        swappiness,
        max_la,
        max_wait,
        high_la_delay=True,
        cycler=None,
        clock=time.monotonic,
        interval=TICK_INTERVAL,
    ):
        self.swappiness = swappiness
        self.max_la = max_la
        self.max_wait = max_wait
        self.high_la_delay = high_la_delay
        self.cycler = cycler or SwapCycler()
        self.clock = clock
        self.interval = interval
        self.watermark = None
        self.pending_since = None
        self.cycle_in_progress = False

    def tick(self, now=None):
        """Run one check, cleaning swap if it's safe.  Returns the outcome."""
        if now is None:
            now = self.clock()

        try:
            mem = get_memory_sample()
        except ProbeError as e:
            logging.error("Can't get system memory usage: %s" % e)
            return TICK_PROBE_ERROR

        if self.watermark is None and mem.mem_total:
            self.watermark = compute_watermark(mem.mem_total, self.swappiness)

        logging.debug(
            "Memory: %s / %s | Swap: %s / %s | Swappiness: %s (max %s)"
            % (
                pretty_size(mem.mem_used),
                pretty_size(mem.mem_total),
                pretty_size(mem.swap_used),
                pretty_size(mem.swap_total),
                pretty_perc(self.swappiness),
                pretty_size(self.watermark or 0),
            )
        )

        if not has_swap_to_clean(mem.swap_used):
            return TICK_NO_SWAP

        if self.watermark is None or not is_safe_to_clean(mem.mem_used, mem.swap_used, self.watermark):
            logging.warning(
                "Not enough memory to clean up swap: used (%s) + swap (%s) > %s (swappiness %s)"
                % (
                    pretty_size(mem.mem_used),
                    pretty_size(mem.swap_used),
                    pretty_size(self.watermark or 0),
                    pretty_perc(self.swappiness),
                )
            )
            return TICK_NO_HEADROOM

        try:
            la = get_load_sample()
        except ProbeError as e:
            logging.error("Can't check system LA: %s" % e)
            return TICK_LOAD_ERROR

        logging.debug("LA: %.2f (max %.2f)" % (la.min1, self.max_la))

        if self.high_la_delay and la.min1 >= self.max_la:
            if self.pending_since is None:
                self.pending_since = now
                logging.warning(
                    "System LA is too high (%.2f >= %.2f), cleaning is delayed (max wait: %s)"
                    % (la.min1, self.max_la, short_duration(self.max_wait))
                )
                return TICK_DEFERRED
            if now - self.pending_since < self.max_wait:
                return TICK_DEFERRED
            logging.warning(
                "System LA is too high (%.2f >= %.2f), but the maximum wait limit (%s) is reached. Clean anyway..."
                % (la.min1, self.max_la, short_duration(self.max_wait))
            )

        return self.clean(mem)

    def clean(self, mem):
        logging.info("Found swap to clean (%s), cleaning..." % pretty_size(mem.swap_used))

        started = self.clock()
        ## left set if we get killed halfway, see cleanup()
        self.cycle_in_progress = True
        error = self.cycler.clean_swap()
        self.cycle_in_progress = False
        self.pending_since = None

        if error:
            if error.critical:
                logging.critical("%s - swap may be left disabled!" % error)
            else:
                logging.error(str(error))
            return TICK_CLEAN_FAILED

        took = short_duration(self.clock() - started)
        try:
            after = get_memory_sample()
        except ProbeError:
            logging.info("Data successfully moved from swap to memory (took %s)" % took)
        else:
            logging.info(
                "Data successfully moved from swap to memory (took %s). Memory: %s / %s (%s)"
                % (
                    took,
                    pretty_size(after.mem_used),
                    pretty_size(after.mem_total),
                    pretty_perc(100.0 * after.mem_used / after.mem_total if after.mem_total else 0),
                )
            )
        return TICK_CLEANED

    def run(self):
        """Main swap-reaper loop.  Never returns."""
        next_tick = self.clock() + self.interval
        while True:
            delay = next_tick - self.clock()
            if delay > 0:
                time.sleep(delay)
            self.tick()
            next_tick += self.interval
            ## ticks missed during a slow cycle are dropped, not caught up
            if next_tick <= self.clock():
                next_tick = self.clock() + self.interval

    def cleanup(self):
        """Turn swap back on if we got interrupted in the middle of a cycle."""
        if not self.cycle_in_progress:
            return
        logging.warning("Interrupted while cleaning swap, enabling swap back")
        self.cycle_in_progress = False
        try:
            exit_code = run_command(SWAPON_COMMAND)
        except OSError as e:
            logging.critical("Can't enable swap back using swapon: %s" % e)
            return
        if exit_code != 0:
            logging.critical("Can't enable swap back using swapon: swapon exited with code %d" % exit_code)


#########################
## Startup and signals
#########################


def check_user():
    if os.geteuid() != 0:
        raise SwapReaperError("You must run this daemon as super user (root)")


def _shutdown_handler(signum, frame):
    logging.info("Received %s signal, shutdown..." % signal.Signals(signum).name[3:])
    sys.exit(0)


def _hup_handler(signum, frame):
    logging.info("Received HUP signal, log will be reopened...")
    reopen_log()
    logging.info("Log reopened by HUP signal")


def register_signal_handlers():
    signal.signal(signal.SIGTERM, _shutdown_handler)
    signal.signal(signal.SIGINT, _shutdown_handler)
    signal.signal(signal.SIGHUP, _hup_handler)


def start():
    """Check that there is something to do, and set up the state."""
    try:
        mem = get_memory_sample()
    except ProbeError as e:
        raise SwapReaperError("Can't get memory usage info: %s" % e) from e

    if mem.swap_total == 0:
        raise SwapReaperError("Swap is disabled, nothing to do...")

    try:
        swappiness = get_swappiness()
    except ProbeError as e:
        raise SwapReaperError("Can't read swappiness configuration: %s" % e) from e

    if swappiness > SWAPPINESS_WARN_LEVEL:
        logging.warning(
            "The kernel parameter 'vm.swappiness' is too high (%d)! A value between 5 and 30 is recommended."
            % swappiness
        )

    return SwapReaperState(
        swappiness,
        max_la=config.max_la,
        max_wait=config.max_wait,
        high_la_delay=config.high_la_delay,
        cycler=SwapCycler(timeout=config.command_timeout),
    )


def print_verbose_version():
    try:
        swappiness = get_swappiness()
    except ProbeError:
        swappiness = "unknown"
    print(f"{__product__} {__version__}")
    print(f"Python:     {platform.python_implementation()} {platform.python_version()}")
    print(f"Kernel:     {platform.system()} {platform.release()}")
    print(f"Swappiness: {swappiness}")


def main():
    """Main entry point for swap-reaper."""
    p = create_argument_parser()
    args = p.parse_args()

    if args.verbose_version:
        print_verbose_version()
        sys.exit(0)

    try:
        check_user()
        cfg = init_config(args)
        register_signal_handlers()
        setup_logging(cfg)
    except (SwapReaperError, OSError) as e:
        print("Error: %s" % e, file=sys.stderr)
        sys.exit(1)

    logging.info("%s %s starting..." % (__product__, __version__))

    try:
        state = start()
    except SwapReaperError as e:
        logging.critical(str(e))
        sys.exit(1)

    logging.info("Initialization finished, monitoring system swap...")

    try:
        state.run()
    finally:
        state.cleanup()
        logging.shutdown()


if __name__ == "__main__":
    main()
