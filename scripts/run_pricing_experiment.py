"""
CLI pour piloter les expériences de prix d'une boutique.

Exemples :
    python scripts/run_pricing_experiment.py propose --max-variants 5
    python scripts/run_pricing_experiment.py start --name "Automne" --no-auto-apply
    python scripts/run_pricing_experiment.py list --limit 10
    python scripts/run_pricing_experiment.py stop price-exp-1760000000000-abcd1234
    python scripts/run_pricing_experiment.py performance price-exp-... --window-days 21
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ajout de la racine du projet pour exécuter le script sans installation
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pricing_experiments.config import Settings
from pricing_experiments.errors import FeatureDisabledError, PricingExperimentError
from pricing_experiments.feature_flags import AI_PRICING_EXPERIMENTS, is_feature_enabled
from pricing_experiments.server import build_service

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _add_guardrail_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--max-variants", type=int, default=None, help="Nombre max de variantes (1-30)")
    parser.add_argument("--min-delta", type=float, default=None, help="Delta minimum en %% (-20 à 0)")
    parser.add_argument("--max-delta", type=float, default=None, help="Delta maximum en %% (0 à 20)")
    parser.add_argument("--variant-id", action="append", dest="variant_ids", default=None,
                        help="Variante explicite (répétable)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expériences de prix (propose / start / stop / list / performance)")
    parser.add_argument("--store-id", default=None, help="Boutique (défaut : STORE_ID)")
    parser.add_argument("--user-id", default=None, help="Utilisateur à l'origine de l'action")

    subparsers = parser.add_subparsers(dest="command", required=True)

    propose = subparsers.add_parser("propose", help="Calculer une proposition sans modifier les prix")
    _add_guardrail_args(propose)

    start = subparsers.add_parser("start", help="Démarrer une expérience")
    start.add_argument("--name", required=True, help="Nom de l'expérience")
    start.add_argument("--experiment-id", default=None, help="Identifiant (généré si absent)")
    start.add_argument("--no-auto-apply", action="store_true", help="Enregistrer sans appliquer les prix")
    _add_guardrail_args(start)

    stop = subparsers.add_parser("stop", help="Arrêter une expérience et restaurer les prix")
    stop.add_argument("experiment_id")

    listing = subparsers.add_parser("list", help="Lister les expériences")
    listing.add_argument("--limit", type=int, default=None)

    performance = subparsers.add_parser("performance", help="Comparer les fenêtres avant/après")
    performance.add_argument("experiment_id")
    performance.add_argument("--window-days", type=int, default=None)

    return parser


def run(args: argparse.Namespace, settings: Settings) -> dict:
    # Même garde que le serveur : FEATURE_FLAGS doit contenir ai_pricing_experiments
    if not is_feature_enabled(settings.feature_flags, AI_PRICING_EXPERIMENTS):
        raise FeatureDisabledError("Agentic pricing experiments are currently disabled")

    store_id = args.store_id or settings.store_id
    if not store_id:
        raise SystemExit("--store-id ou STORE_ID est requis")

    service = build_service(store_id, args.user_id, settings)

    if args.command == "propose":
        return service.propose(
            max_variants=args.max_variants,
            variant_ids=args.variant_ids,
            min_delta_percent=args.min_delta,
            max_delta_percent=args.max_delta,
        ).to_dict()
    if args.command == "start":
        return service.start(
            name=args.name,
            auto_apply=not args.no_auto_apply,
            experiment_id=args.experiment_id,
            max_variants=args.max_variants,
            variant_ids=args.variant_ids,
            min_delta_percent=args.min_delta,
            max_delta_percent=args.max_delta,
        ).to_dict()
    if args.command == "stop":
        return service.stop(args.experiment_id).to_dict()
    if args.command == "list":
        return {"experiments": [e.to_dict() for e in service.list_experiments(args.limit)]}
    return service.get_performance(args.experiment_id, args.window_days).to_dict()


def main():
    args = build_parser().parse_args()
    settings = Settings.from_env()

    try:
        result = run(args, settings)
    except PricingExperimentError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == '__main__':
    main()
