"""Operator runtime settings and their command-line flags."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Sequence

from bladeop import version

OPERATOR_CHAOSBLADE_PATH = "/opt/chaosblade"
OPERATOR_CHAOSBLADE_BIN = "/opt/chaosblade/bin"
OPERATOR_CHAOSBLADE_LIB = "/opt/chaosblade/lib"
OPERATOR_CHAOSBLADE_YAML = "/opt/chaosblade/yaml"
OPERATOR_CHAOSBLADE_BLADE = "/opt/chaosblade/blade"

DAEMONSET_POD_NAME = "chaosblade-tool"
DEFAULT_REMOVE_BLADE_INTERVAL = "72h"
DAEMONSET_POD_LABELS = MappingProxyType({"app": "chaosblade-tool"})

AHAS = "ahas"
COMMUNITY = "community"
_PROD_ENV = "prod"
_PUBLIC_REGION = "cn-public"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass
class Settings:
    """All flags the operator accepts, with their defaults."""

    log_level: str = "info"
    reconcile_count: int = 20
    qps: float = 20.0
    chaosblade_version: str = version.VERSION
    image_repository: str = "chaosbladeio/chaosblade-tool"
    pull_policy: str = "IfNotPresent"
    daemonset_enable: bool = False
    remove_blade_interval: str = DEFAULT_REMOVE_BLADE_INTERVAL
    download_url: str = ""
    namespace: str = "chaosblade"
    aliyun_region_id: str = ""
    aliyun_environment: str = ""
    fuse_sidecar_image: str = ""
    fuse_server_port: int = 65534
    webhook_port: int = 9443
    webhook_enable: bool = False
    product: str = version.PRODUCT

    def image_repo(self) -> str:
        """Image repository of the chaosblade tool for the configured product."""
        try:
            repo_func = _PRODUCTS[self.product]
        except KeyError:
            raise ValueError(f"unknown product {self.product!r}") from None
        return repo_func(self)


def image_repo_for_aliyun(region_id: str, environment: str) -> str:
    if region_id == _PUBLIC_REGION:
        if environment == _PROD_ENV:
            return "registry.cn-hangzhou.aliyuncs.com/ahascr-public/chaosblade-tool"
        return "registry.cn-hangzhou.aliyuncs.com/ahas-public/chaosblade-tool"
    if environment == _PROD_ENV:
        return f"registry-vpc.{region_id}.aliyuncs.com/ahascr/chaosblade-tool"
    return f"registry-vpc.{region_id}.aliyuncs.com/ahas/chaosblade-tool"


def image_repo_for_community(settings: Settings) -> str:
    return settings.image_repository


_PRODUCTS: dict[str, Callable[[Settings], str]] = {
    AHAS: lambda s: image_repo_for_aliyun(s.aliyun_region_id, s.aliyun_environment),
    COMMUNITY: image_repo_for_community,
}

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _int32(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value {text!r}") from None
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise argparse.ArgumentTypeError(f"value {text!r} out of range")
    return value


def _add_bool(parser: argparse.ArgumentParser, flag: str, dest: str, help_text: str) -> None:
    parser.add_argument(
        flag, dest=dest, nargs="?", const=True, default=False, type=_parse_bool, help=help_text
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every operator flag."""
    defaults = Settings()
    parser = argparse.ArgumentParser(prog="operator")
    parser.add_argument(
        "--log-level", dest="log_level", default=defaults.log_level,
        help="Log level, such as panic|fatal|error|warn|info|debug|trace",
    )
    parser.add_argument(
        "--reconcile-count", dest="reconcile_count", type=int,
        default=defaults.reconcile_count, help="Max concurrent reconciles count",
    )
    parser.add_argument(
        "--qps", dest="qps", type=float, default=defaults.qps, help="qps of kubernetes client"
    )
    parser.add_argument(
        "--aliyun-region-id", dest="aliyun_region_id", default="",
        help="Region id for cloud provider",
    )
    parser.add_argument(
        "--aliyun-environment", dest="aliyun_environment", default="",
        help="Environment for cloud provider",
    )
    parser.add_argument(
        "--chaosblade-version", dest="chaosblade_version",
        default=defaults.chaosblade_version, help="Chaosblade tool version",
    )
    parser.add_argument(
        "--chaosblade-image-repository", dest="image_repository",
        default=defaults.image_repository, help="Image repository of chaosblade tool",
    )
    parser.add_argument(
        "--chaosblade-image-pull-policy", dest="pull_policy", default=defaults.pull_policy,
        help="Pulling policy of chaosblade image",
    )
    _add_bool(parser, "--daemonset-enable", "daemonset_enable",
              "Deploy chaosblade daemonset to resolve chaos experiment environment of network")
    parser.add_argument(
        "--remove-blade-interval", dest="remove_blade_interval",
        default=defaults.remove_blade_interval,
        help="Periodically clean up blade state is destroying",
    )
    parser.add_argument(
        "--chaosblade-download-url", dest="download_url", default="",
        help="The chaosblade downloaded address used in download mode",
    )
    parser.add_argument(
        "--chaosblade-namespace", dest="namespace", default=defaults.namespace,
        help="The chaosblade deployment namespace",
    )
    parser.add_argument(
        "--fuse-sidecar-image", dest="fuse_sidecar_image", default="",
        help="Fuse sidecar image",
    )
    parser.add_argument(
        "--fuse-server-port", dest="fuse_server_port", type=_int32,
        default=defaults.fuse_server_port, help="Fuse server port",
    )
    parser.add_argument(
        "--webhook-port", dest="webhook_port", type=int, default=defaults.webhook_port,
        help="The port on which to serve HTTPS.",
    )
    _add_bool(parser, "--webhook-enable", "webhook_enable", "Whether to enable webhook")
    return parser


def parse_settings(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line flags into a Settings object."""
    namespace = build_parser().parse_args(argv)
    return Settings(**vars(namespace))