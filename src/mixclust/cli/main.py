#!/usr/bin/env python3
"""
Mixclust CLI - cluster tables of mixed numeric and categorical data
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from mixclust.clustering import (
    AdvisorReport,
    AnalysisResult,
    ClusterAnalyzer,
    profiles_to_frame,
)
from mixclust.config import (
    ConfigLoader,
    MixclustConfig,
    configure_logging,
    get_default_config,
    load_config,
    save_config,
    validate_config,
)
from mixclust.storage import load_dataset, save_results
from mixclust.utils import dumps_numpy


class MixclustCLI:
    """Main CLI interface for Mixclust."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog="mixclust",
            description="Cluster records with mixed numeric and categorical attributes",
        )

        # Flags shared by every command
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--config", type=Path, help="Project config file (TOML)")
        common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

        # Flags shared by commands that read data
        data = argparse.ArgumentParser(add_help=False)
        data.add_argument("data", type=Path, help="CSV file with one record per row")
        data.add_argument("--seed", type=int, help="Random seed")
        data.add_argument(
            "--workers", type=int, help="Worker threads (-1 = all CPUs)"
        )
        data.add_argument("--id-column", help="Identifier column excluded from clustering")
        data.add_argument(
            "--no-id-column",
            action="store_true",
            help="Cluster on every column, there is no identifier",
        )
        data.add_argument(
            "--categorical",
            action="append",
            metavar="COLUMN",
            help="Treat a column as categorical (repeatable)",
        )
        data.add_argument(
            "--drop-missing",
            action="store_true",
            help="Drop rows with missing values before clustering",
        )
        data.add_argument("--max-k", type=int, help="Largest cluster count evaluated")
        data.add_argument("--json", action="store_true", help="Output as JSON")

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # Advise command
        advise_parser = subparsers.add_parser(
            "advise",
            parents=[common, data],
            help="Recommend a number of clusters",
        )
        advise_parser.add_argument(
            "--gap", action="store_true", help="Also compute the gap statistic"
        )
        advise_parser.add_argument(
            "-B",
            "--references",
            type=int,
            help="Reference datasets for the gap statistic",
        )

        # Cluster command
        cluster_parser = subparsers.add_parser(
            "cluster",
            parents=[common, data],
            help="Cluster records with both methods",
        )
        cluster_parser.add_argument(
            "-k", "--clusters", type=int, help="Number of clusters (default: advised)"
        )
        cluster_parser.add_argument(
            "-o", "--output", type=Path, help="Write records with cluster columns to CSV"
        )
        cluster_parser.add_argument(
            "--restarts", type=int, help="K-prototypes random restarts"
        )
        cluster_parser.add_argument(
            "--lambda",
            dest="balancing_weight",
            type=float,
            help="Categorical mismatch weight (default: estimated)",
        )

        # Config command
        config_parser = subparsers.add_parser("config", help="Manage configuration")
        config_subparsers = config_parser.add_subparsers(
            dest="config_command", help="Configuration commands"
        )

        # config show
        config_show = config_subparsers.add_parser(
            "show",
            parents=[common],
            help="Show effective configuration (merged from all sources)",
        )
        config_show.add_argument("--json", action="store_true", help="Output as JSON")

        # config validate
        config_subparsers.add_parser(
            "validate", parents=[common], help="Validate configuration"
        )

        # config init
        config_init = config_subparsers.add_parser(
            "init", parents=[common], help="Write a config file with default values"
        )
        config_init.add_argument(
            "--global",
            dest="global_config",
            action="store_true",
            help="Write the user config instead of ./mixclust.toml",
        )
        config_init.add_argument(
            "--force", action="store_true", help="Overwrite an existing file"
        )

        return parser

    def run(self, args=None) -> int:
        """Run the CLI."""
        args = self.parser.parse_args(args)

        if not args.command:
            self.parser.print_help()
            return 0

        # Execute command
        try:
            if args.command == "advise":
                return self._cmd_advise(args)
            elif args.command == "cluster":
                return self._cmd_cluster(args)
            elif args.command == "config":
                return self._cmd_config(args)
            else:
                print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
                return 1
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    def _load_config(self, args) -> MixclustConfig:
        """Load configuration and apply command-line overrides."""
        config = load_config(config_file=getattr(args, "config", None))

        overrides = {
            "clustering.random_seed": getattr(args, "seed", None),
            "clustering.parallel_workers": getattr(args, "workers", None),
            "clustering.max_candidate_k": getattr(args, "max_k", None),
            "clustering.reference_resamples": getattr(args, "references", None),
            "clustering.chosen_k": getattr(args, "clusters", None),
            "clustering.restarts": getattr(args, "restarts", None),
            "clustering.balancing_weight": getattr(args, "balancing_weight", None),
            "data.id_column": getattr(args, "id_column", None),
        }
        for key, value in overrides.items():
            if value is not None:
                config.set_nested(key, value)

        if getattr(args, "gap", False):
            config.clustering.compute_gap = True
        if getattr(args, "drop_missing", False):
            config.data.drop_missing = True
        if getattr(args, "no_id_column", False):
            config.data.id_column = None
        if getattr(args, "categorical", None):
            config.data.categorical_columns = list(args.categorical)

        result = validate_config(config)
        if not result.valid:
            raise ValueError(
                "Invalid configuration: " + "; ".join(str(e) for e in result.errors)
            )

        configure_logging(config.logging, verbose=getattr(args, "verbose", False))
        return config

    def _cmd_advise(self, args) -> int:
        """Recommend a number of clusters."""
        config = self._load_config(args)
        dataset = load_dataset(args.data, config.data)

        analyzer = ClusterAnalyzer(
            config.clustering, show_progress=not args.json and sys.stderr.isatty()
        )
        report = analyzer.advise(dataset)

        if args.json:
            print(dumps_numpy(report.to_dict(), indent=2))
            return 0

        self._print_advice(report)
        return 0

    def _cmd_cluster(self, args) -> int:
        """Cluster records with both methods."""
        config = self._load_config(args)
        dataset = load_dataset(args.data, config.data)

        analyzer = ClusterAnalyzer(
            config.clustering, show_progress=not args.json and sys.stderr.isatty()
        )
        result = analyzer.run(dataset)

        if args.output:
            save_results(
                args.output,
                dataset,
                result.h_labels,
                result.k_labels,
                id_column=config.data.id_column,
                delimiter=config.data.delimiter,
            )

        if args.json:
            print(dumps_numpy(result.to_dict(), indent=2))
            return 0

        self._print_analysis(result)
        if args.output:
            print(f"\nWrote clustered records to {args.output}")
        return 0

    def _cmd_config(self, args) -> int:
        """Manage configuration."""
        if not args.config_command or args.config_command == "show":
            # Show effective configuration
            config = load_config(config_file=getattr(args, "config", None))

            if getattr(args, "json", False):
                print(json.dumps(config.to_dict(), indent=2))
                return 0

            self._print_config(config)
            return 0

        elif args.config_command == "validate":
            config = load_config(config_file=args.config)
            result = validate_config(config)

            if result.valid:
                print("Configuration is valid")
            else:
                print("Configuration has errors:")
                for error in result.errors:
                    print(f"  - {error}")
            if result.warnings:
                print("\nWarnings:")
                for warning in result.warnings:
                    print(f"  - {warning}")
            return 0 if result.valid else 1

        elif args.config_command == "init":
            loader = ConfigLoader(config_file=args.config)
            if args.global_config:
                path = loader.user_config_path
            else:
                path = loader.project_config_path

            if path.exists() and not args.force:
                print(f"{path} already exists. Use --force to overwrite.", file=sys.stderr)
                return 1

            save_config(get_default_config(), path)
            print(f"Wrote default configuration to {path}")
            return 0

        return 0

    def _print_config(self, config: MixclustConfig) -> None:
        """Print configuration in human-readable format."""
        print("Mixclust Configuration")
        print("=" * 50)

        for section, values in config.to_dict().items():
            print()
            print(f"[{section}]")
            for key, value in values.items():
                if isinstance(value, bool):
                    print(f"  {key} = {str(value).lower()}")
                elif isinstance(value, str):
                    print(f"  {key} = {value!r}")
                elif value is None:
                    print(f"  {key} = (auto)")
                else:
                    print(f"  {key} = {value}")

    def _print_advice(self, report: AdvisorReport) -> None:
        """Print advisor curves as a table."""
        print("Cluster Count Advice")
        print("=" * 50)

        silhouette = dict(report.silhouette.as_pairs())
        gap = report.gap
        header = f"{'k':>4} {'W(k)':>12} {'S(k)':>10}"
        if gap is not None:
            header += f" {'Gap(k)':>10} {'sd(k)':>10}"
        print(header)
        print("-" * len(header))

        for index, (k, dispersion) in enumerate(report.dispersion.as_pairs()):
            score = silhouette.get(k)
            line = f"{k:>4} {dispersion:>12.4f} "
            line += f"{score:>10.4f}" if score is not None else f"{'-':>10}"
            if gap is not None:
                line += f" {gap.gap[index]:>10.4f} {gap.sd[index]:>10.4f}"
            print(line)

        print()
        print(f"Silhouette recommends k = {report.silhouette.recommended_k}")
        if gap is not None:
            note = "" if gap.converged else " (rule did not converge, try a larger --max-k)"
            print(f"Gap statistic recommends k = {gap.recommended_k}{note}")
        print("Inspect W(k) for an elbow; no automatic pick is made from it.")

    def _print_analysis(self, result: AnalysisResult) -> None:
        """Print both partitions, their agreement and cluster profiles."""
        print("Cluster Analysis")
        print("=" * 50)
        if result.advice is not None:
            print(f"Advised k:            {result.chosen_k} (silhouette)")
        else:
            print(f"Configured k:         {result.chosen_k}")

        h_metrics = result.hierarchical.metrics
        k_metrics = result.kprototypes.metrics
        print(f"Hierarchical sizes:   {result.hierarchical.assignment.sizes()}")
        print(f"K-prototypes sizes:   {result.kprototypes.assignment.sizes()}")
        print(f"Cophenetic corr.:     {h_metrics['cophenetic_correlation']:.4f}")
        print(f"K-prototypes cost:    {k_metrics['cost']:.4f} "
              f"(lambda = {k_metrics['balancing_weight']:.4g})")
        print(f"Adjusted Rand index:  {result.adjusted_rand_index:.4f}")

        print()
        print("Hierarchical (rows) vs k-prototypes (columns):")
        print(result.contingency.to_string())

        print()
        print("Hierarchical cluster profiles:")
        print(profiles_to_frame(result.hierarchical_profiles).to_string())
        print()
        print("K-prototypes cluster profiles:")
        print(profiles_to_frame(result.kprototypes_profiles).to_string())


def main(argv: Optional[list] = None):
    """Main entry point."""
    cli = MixclustCLI()
    sys.exit(cli.run(argv))


if __name__ == "__main__":
    main()
