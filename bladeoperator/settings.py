"""Command-line settings of the operator, its tool daemonset and the webhook."""

from __future__ import annotations

import argparse
from dataclasses import dataclass

from bladeoperator.version import PRODUCT, VERSION

OPERATOR_CHAOSBLADE_PATH = "/opt/chaosblade"
OPERATOR_CHAOSBLADE_BIN = "/opt/chaosblade/bin"
OPERATOR_CHAOSBLADE_LIB = "/opt/chaosblade/lib"
OPERATOR_CHAOSBLADE_YAML = "/opt/chaosblade/yaml"
OPERATOR_CHAOSBLADE_BLADE = "/opt/chaosblade/blade"

DAEMONSET_POD_NAME = "chaosblade-tool"
DAEMONSET_POD_LABELS = {"app": "chaosblade-tool"}
DEFAULT_REMOVE_BLADE_INTERVAL = "72h"
DEFAULT_IMAGE_REPOSITORY = "chaosbladeio/chaosblade-tool"

AHAS = "ahas"
COMMUNITY = "community"

_PROD_ENV = "prod"
_PUBLIC_REGION = "cn-public"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def aliyun_image_repository(region_id, environment):
    """Image repository of the chaosblade tool for the given cloud region."""
    if region_id == _PUBLIC_REGION:
        if environment == _PROD_ENV:
            return "registry.cn-hangzhou.aliyuncs.com/ahascr-public/chaosblade-tool"
        return "registry.cn-hangzhou.aliyuncs.com/ahas-public/chaosblade-tool"
    if environment == _PROD_ENV:
        return f"registry-vpc.{region_id}.aliyuncs.com/ahascr/chaosblade-tool"
    return f"registry-vpc.{region_id}.aliyuncs.com/ahas/chaosblade-tool"


@dataclass
class OperatorSettings:
    """Every option the operator accepts, with its default."""

    log_level: str = "info"
    reconcile_count: int = 20
    qps: float = 20.0
    aliyun_region_id: str = ""
    aliyun_environment: str = ""
    chaosblade_version: str = VERSION
    chaosblade_image_repository: str = DEFAULT_IMAGE_REPOSITORY
    chaosblade_image_pull_policy: str = "IfNotPresent"
    daemonset_enable: bool = False
    remove_blade_interval: str = DEFAULT_REMOVE_BLADE_INTERVAL
    fuse_sidecar_image: str = ""
    fuse_server_port: int = 65534
    webhook_port: int = 9443
    webhook_enable: bool = False
    product: str = PRODUCT

    def image_repository_for_product(self):
        """Image repository of the chaosblade tool for the configured product."""
        if self.product == AHAS:
            return aliyun_image_repository(self.aliyun_region_id, self.aliyun_environment)
        if self.product == COMMUNITY:
            return self.chaosblade_image_repository
        raise ValueError(f"unknown product {self.product!r}")


def _parse_bool(text):
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _add_bool(parser, flag, dest, help_text):
    parser.add_argument(
        flag,
        dest=dest,
        nargs="?",
        const=True,
        default=False,
        type=_parse_bool,
        help=help_text,
    )


def build_parser():
    """Argument parser for every operator option."""
    defaults = OperatorSettings()
    parser = argparse.ArgumentParser(prog="operator", allow_abbrev=False)

    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=defaults.log_level,
        help="Log level, such as panic|fatal|error|warn|info|debug|trace",
    )
    parser.add_argument(
        "--reconcile-count",
        dest="reconcile_count",
        type=int,
        default=defaults.reconcile_count,
        help="Max concurrent reconciles count, default value is 20",
    )
    parser.add_argument(
        "--qps",
        dest="qps",
        type=float,
        default=defaults.qps,
        help="qps of kubernetes client",
    )

    parser.add_argument(
        "--aliyun-region-id",
        dest="aliyun_region_id",
        default=defaults.aliyun_region_id,
        help="Region id for cloud provider",
    )
    parser.add_argument(
        "--aliyun-environment",
        dest="aliyun_environment",
        default=defaults.aliyun_environment,
        help="Environment for cloud provider",
    )

    parser.add_argument(
        "--chaosblade-version",
        dest="chaosblade_version",
        default=defaults.chaosblade_version,
        help="Chaosblade tool version",
    )
    parser.add_argument(
        "--chaosblade-image-repository",
        dest="chaosblade_image_repository",
        default=defaults.chaosblade_image_repository,
        help="Image repository of chaosblade tool",
    )
    parser.add_argument(
        "--chaosblade-image-pull-policy",
        dest="chaosblade_image_pull_policy",
        default=defaults.chaosblade_image_pull_policy,
        help="Pulling policy of chaosblade image, default value is IfNotPresent.",
    )
    _add_bool(
        parser,
        "--daemonset-enable",
        "daemonset_enable",
        "Deploy chaosblade daemonset to resolve chaos experiment environment "
        "of network, default value is false.",
    )
    parser.add_argument(
        "--remove-blade-interval",
        dest="remove_blade_interval",
        default=defaults.remove_blade_interval,
        help="Periodically clean up blade state is destroying.",
    )

    parser.add_argument(
        "--fuse-sidecar-image",
        dest="fuse_sidecar_image",
        default=defaults.fuse_sidecar_image,
        help="Fuse sidecar image",
    )
    parser.add_argument(
        "--fuse-server-port",
        dest="fuse_server_port",
        type=int,
        default=defaults.fuse_server_port,
        help="Fuse server port",
    )
    parser.add_argument(
        "--webhook-port",
        dest="webhook_port",
        type=int,
        default=defaults.webhook_port,
        help="The port on which to serve HTTPS.",
    )
    _add_bool(parser, "--webhook-enable", "webhook_enable", "Whether to enable webhook")
    return parser


def parse_settings(argv=None):
    """Parse ``argv`` into :class:`OperatorSettings`; bad input exits."""
    namespace = build_parser().parse_args(argv)
    return OperatorSettings(**vars(namespace))