#!/usr/bin/env python3
"""Hackathon Account Baseline - Command Line Entry Points.

``hackathon-baseline`` deploys the per-account baseline to every team
account in the configuration file. ``hackathon-baseline-scp`` deploys the
guardrails Service Control Policy to the hackathon OU.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from . import __version__
from .core.aws_client import AWSClientManager
from .core.config import Configuration, ConfigurationError
from .deployment.accounts import AccountIterator
from .deployment.control_plane import ControlPlaneClient
from .deployment.credentials import CredentialBroker
from .deployment.operations import OperationRegistry
from .deployment.orchestrator import DeploymentOrchestrator
from .deployment.reporter import EXIT_CONFIGURATION_ERROR, EXIT_FAILED_ACCOUNTS, OutcomeReporter
from .guardrails.scp import (
    DEFAULT_POLICY_DESCRIPTION,
    DEFAULT_POLICY_NAME,
    SCPDeployer,
    SCPDeploymentError,
)


logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the baseline deployment.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Deploy the hackathon baseline to every team account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s config/accounts.json                 # Deploy to all accounts
  %(prog)s config/accounts.json --dry-run       # Validate and show the plan
  %(prog)s config/accounts.json --only team-01  # Deploy a single team

Exit codes: 0 success, 1 one or more accounts failed, 2 invalid configuration
        """,
    )

    parser.add_argument(
        "config_file",
        nargs="?",
        help="Path to account configuration file (default: auto-detect)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and report planned operations without applying changes",
    )
    parser.add_argument("--only", metavar="TEAM", help="Deploy only to this team")
    parser.add_argument("--profile", help="AWS profile name to use for credentials")
    parser.add_argument("--region", help="AWS region to deploy to (overrides configuration file)")
    parser.add_argument(
        "--skip-on-failed-dependency",
        action="store_true",
        help="Skip the recorder step when the compliance stack failed",
    )
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Report format (default: text)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"Hackathon Account Baseline v{__version__}",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # boto internals are noisy at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def display_banner() -> None:
    """Display application banner."""
    print(
        """
╔══════════════════════════════════════════════════════════════════════════════╗
║                      Hackathon Account Baseline Deployment                   ║
║                                                                              ║
║        Budget alerts, AWS Config monitoring and recorders per team account   ║
║                                                                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """
    )


def install_cancel_handler(cancel_event: threading.Event) -> None:
    """Turn the first Ctrl-C into a cooperative cancellation request."""

    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\n⚠️  Cancellation requested, finishing the current account...")
        cancel_event.set()

    signal.signal(signal.SIGINT, handler)


def load_plan(config: Configuration, only: Optional[str]):
    """Load and validate everything a run needs before touching AWS.

    Returns:
        Tuple of (AccountIterator, OperationRegistry)

    Raises:
        ConfigurationError: When anything is invalid
    """
    accounts = AccountIterator(
        config.get_accounts_source(), default_role_name=config.get_assume_role_name()
    )
    accounts.require_team(only)
    registry = OperationRegistry.default()
    registry.validate_templates(config.get_templates_dir())
    return accounts, registry


def main(argv: Optional[List[str]] = None) -> int:
    """Baseline deployment entry point.

    Returns:
        Exit code (0 success, 1 failed accounts, 2 invalid configuration)
    """
    try:
        args = parse_arguments(argv)
        configure_logging(args.verbose)
        display_banner()

        try:
            config = Configuration(args.config_file)
            print(f"📄 Using configuration file: {config.config_path}")
            accounts, registry = load_plan(config, args.only)
        except ConfigurationError as e:
            print(f"❌ Configuration error: {e}")
            return EXIT_CONFIGURATION_ERROR

        region = args.region or config.get_region()
        cancel_event = threading.Event()

        if args.dry_run:
            # No AWS calls are made while planning
            control_plane = None
        else:
            try:
                aws_client = AWSClientManager(
                    profile_name=args.profile or config.get_profile_name(),
                    region_name=region,
                )
                print(f"🔑 Management account: {aws_client.get_account_id()}")
            except (BotoCoreError, ClientError) as e:
                print(f"❌ AWS client initialization failed: {e}")
                return EXIT_FAILED_ACCOUNTS
            control_plane = ControlPlaneClient(aws_client, config.get_templates_dir())
            install_cancel_handler(cancel_event)

        orchestrator = DeploymentOrchestrator(
            broker=CredentialBroker(control_plane),
            control_plane=control_plane,
            registry=registry,
            region=region,
            cloud_team_email=config.get_cloud_team_email(),
            account_delay=config.get_account_delay(),
            skip_on_failed_dependency=args.skip_on_failed_dependency,
            cancel_event=cancel_event,
        )

        try:
            summary = orchestrator.run(accounts, only=args.only, dry_run=args.dry_run)
        except ConfigurationError as e:
            print(f"❌ Configuration error: {e}")
            return EXIT_CONFIGURATION_ERROR

        reporter = OutcomeReporter()
        if args.output == "json":
            print(json.dumps(reporter.to_dict(summary), indent=2))
        else:
            print(reporter.summarize(summary))
        return reporter.exit_code(summary)

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return EXIT_INTERRUPTED


def parse_scp_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the SCP deployment."""
    parser = argparse.ArgumentParser(
        description="Deploy the guardrails Service Control Policy to the hackathon OU",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
  %(prog)s --ou-id ou-xxxx-xxxxxxxx --policy-file policies/scps/hackathon-guardrails-scp.json --update
        """,
    )
    parser.add_argument("--ou-id", "-o", required=True, help="Target Organizational Unit ID")
    parser.add_argument("--policy-file", "-f", required=True, help="Path to the SCP JSON document")
    parser.add_argument(
        "--policy-name", "-n", default=DEFAULT_POLICY_NAME,
        help=f"SCP policy name (default: {DEFAULT_POLICY_NAME})",
    )
    parser.add_argument("--description", "-d", default=DEFAULT_POLICY_DESCRIPTION, help="Policy description")
    parser.add_argument("--update", "-u", action="store_true", help="Update existing policy if it exists")
    parser.add_argument("--profile", help="AWS profile name to use for credentials")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def scp_main(argv: Optional[List[str]] = None) -> int:
    """SCP deployment entry point.

    Returns:
        Exit code (0 success, 1 deployment failure, 2 invalid policy document)
    """
    args = parse_scp_arguments(argv)
    configure_logging(args.verbose)

    try:
        SCPDeployer.load_policy_document(Path(args.policy_file))
    except SCPDeploymentError as e:
        print(f"❌ {e}")
        return EXIT_CONFIGURATION_ERROR

    try:
        aws_client = AWSClientManager(profile_name=args.profile)
        print(f"🔑 Management account: {aws_client.get_account_id()}")
    except (BotoCoreError, ClientError) as e:
        print(f"❌ AWS client initialization failed: {e}")
        return EXIT_FAILED_ACCOUNTS

    deployer = SCPDeployer(aws_client)
    try:
        result = deployer.deploy(
            ou_id=args.ou_id,
            policy_file=Path(args.policy_file),
            policy_name=args.policy_name,
            description=args.description,
            update=args.update,
        )
    except SCPDeploymentError as e:
        print(f"❌ SCP deployment failed: {e}")
        return EXIT_FAILED_ACCOUNTS

    print("=" * 40)
    print("✓ SCP Deployment Complete!")
    print("=" * 40)
    for key, value in SCPDeployer.describe_result(result).items():
        print(f"{key}: {value}")
    print("\nThe SCP is now active and will enforce guardrails on all accounts in the OU.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
