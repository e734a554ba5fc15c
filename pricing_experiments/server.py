"""
Serveur Python persistant pour le moteur d'expérimentation de prix.

Le serveur lit des requêtes JSON ligne par ligne sur stdin et répond ligne par
ligne sur stdout. Une requête qui échoue produit une réponse d'erreur mais
n'arrête pas la boucle.

Communication :
- Entrée : JSON ligne par ligne sur stdin
- Sortie : JSON ligne par ligne sur stdout
- Logs : stderr

Lancement : `python pricing_experiments/server.py` ou `python -m pricing_experiments.server`.
"""

import json
import logging
import os
import sys
import uuid
from typing import Any, Callable, Dict, Optional

# Ajout de la racine du projet pour un lancement direct du script
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pricing_experiments.config import Settings, get_default_experiment_config
from pricing_experiments.errors import FeatureDisabledError, NotFoundError, ValidationError
from pricing_experiments.feature_flags import AI_PRICING_EXPERIMENTS, is_feature_enabled
from pricing_experiments.interfaces.data_access import VariantStore, get_supabase_client
from pricing_experiments.interfaces.event_log import EventLog
from pricing_experiments.service import PricingExperimentService

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[str, Optional[str]], PricingExperimentService]


def _optional_int(data: Dict[str, Any], key: str, lower: int, upper: int) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        # Les paramètres de query arrivent parfois en chaîne ("14")
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            value = int(value)
        else:
            raise ValidationError(f"{key} must be an integer")
    if value < lower or value > upper:
        raise ValidationError(f"{key} must be between {lower} and {upper}")
    return value


def _optional_number(data: Dict[str, Any], key: str, lower: float, upper: float) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    if value < lower or value > upper:
        raise ValidationError(f"{key} must be between {lower} and {upper}")
    return float(value)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _required_string(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{key} is required")
    return value


def parse_proposal_params(data: Dict[str, Any]) -> Dict[str, Any]:
    """Valide les paramètres communs à propose/start (mêmes bornes que l'API admin)."""
    config = get_default_experiment_config()

    variant_ids = data.get("variantIds")
    if variant_ids is not None:
        if not isinstance(variant_ids, list) or not all(isinstance(v, str) for v in variant_ids):
            raise ValidationError("variantIds must be a list of strings")
        if len(variant_ids) > 100:
            raise ValidationError("variantIds accepts at most 100 entries")
        for variant_id in variant_ids:
            if not _is_uuid(variant_id):
                raise ValidationError(f"variantIds must contain UUIDs, got {variant_id!r}")

    return {
        "max_variants": _optional_int(data, "maxVariants", *config.max_variants_bounds),
        "variant_ids": variant_ids,
        "min_delta_percent": _optional_number(data, "minDeltaPercent", *config.min_delta_bounds),
        "max_delta_percent": _optional_number(data, "maxDeltaPercent", *config.max_delta_bounds),
    }


def parse_start_params(data: Dict[str, Any]) -> Dict[str, Any]:
    params = parse_proposal_params(data)

    name = data.get("name")
    if not isinstance(name, str) or not 3 <= len(name) <= 120:
        raise ValidationError("name must be between 3 and 120 characters")

    auto_apply = data.get("autoApply", True)
    if not isinstance(auto_apply, bool):
        raise ValidationError("autoApply must be a boolean")

    experiment_id = data.get("experimentId")
    if experiment_id is not None and (not isinstance(experiment_id, str) or not experiment_id):
        raise ValidationError("experimentId must be a non-empty string")

    params.update({"name": name, "auto_apply": auto_apply, "experiment_id": experiment_id})
    return params


def build_service(
    store_id: str,
    user_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> PricingExperimentService:
    client = get_supabase_client(settings)
    return PricingExperimentService(
        store=VariantStore(client, store_id),
        event_log=EventLog(client, store_id),
        user_id=user_id,
    )


def process_request(
    data: Dict[str, Any],
    settings: Optional[Settings] = None,
    service_factory: Optional[ServiceFactory] = None,
) -> Dict[str, Any]:
    """
    Traite une requête JSON unique.

    Format attendu :
    {
        "action": "list" | "propose" | "start" | "stop" | "get" | "performance",
        "storeId": "uuid",          # optionnel si STORE_ID est défini
        "userId": "uuid",           # optionnel
        ...paramètres de l'action
    }
    """
    settings = settings or Settings.from_env()
    if not is_feature_enabled(settings.feature_flags, AI_PRICING_EXPERIMENTS):
        raise FeatureDisabledError("Agentic pricing experiments are currently disabled")

    if not isinstance(data, dict):
        raise ValidationError("request must be a JSON object")

    action = data.get("action")
    store_id = data.get("storeId") or settings.store_id
    if not isinstance(store_id, str) or not store_id:
        raise ValidationError("storeId is required")
    user_id = data.get("userId")

    if service_factory is None:
        service = build_service(store_id, user_id, settings)
    else:
        service = service_factory(store_id, user_id)

    if action == "list":
        limit = _optional_int(data, "limit", *get_default_experiment_config().list_limit_bounds)
        experiments = service.list_experiments(limit)
        return {"status": "success", "experiments": [e.to_dict() for e in experiments]}

    if action == "propose":
        proposal = service.propose(**parse_proposal_params(data))
        return {"status": "success", "proposal": proposal.to_dict()}

    if action == "start":
        result = service.start(**parse_start_params(data))
        return {"status": "success", "experiment": result.to_dict()}

    if action == "stop":
        result = service.stop(_required_string(data, "experimentId"))
        return {"status": "success", **result.to_dict()}

    if action == "get":
        experiment = service.get_experiment(_required_string(data, "experimentId"))
        return {"status": "success", "experiment": experiment.to_dict()}

    if action == "performance":
        window_days = _optional_int(data, "windowDays", *get_default_experiment_config().window_days_bounds)
        performance = service.get_performance(_required_string(data, "experimentId"), window_days)
        return {"status": "success", "performance": performance.to_dict()}

    raise ValidationError(f"Unknown action: {action!r}")


def error_response(error: Exception) -> Dict[str, Any]:
    if isinstance(error, ValidationError):
        code = "VALIDATION_ERROR"
    elif isinstance(error, NotFoundError):
        code = "NOT_FOUND"
    elif isinstance(error, FeatureDisabledError):
        code = "FEATURE_DISABLED"
    else:
        code = "INTERNAL_ERROR"

    return {
        "status": "error",
        "error": str(error),
        "type": type(error).__name__,
        "code": code,
    }


def handle_line(
    line: str,
    settings: Optional[Settings] = None,
    service_factory: Optional[ServiceFactory] = None,
) -> Dict[str, Any]:
    try:
        request_data = json.loads(line)
        return process_request(request_data, settings, service_factory)
    except json.JSONDecodeError as e:
        return error_response(ValidationError(f"Invalid JSON: {e.msg}"))
    except (ValidationError, NotFoundError, FeatureDisabledError) as e:
        logger.warning(f"Requête refusée: {e}")
        return error_response(e)
    except Exception as e:
        # Erreur inattendue : traceback complète dans stderr
        logger.exception(f"Erreur traitement requête: {e}")
        return error_response(e)


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    logger.info(f"Pricing experiments server started (PID: {os.getpid()})")

    # Boucle de lecture sur stdin
    while True:
        try:
            line = sys.stdin.readline()
            if not line:
                break  # Fin du flux (le process parent a fermé stdin)

            line = line.strip()
            if not line:
                continue

            response_data = handle_line(line, settings)
            sys.stdout.write(json.dumps(response_data) + "\n")
            sys.stdout.flush()

        except KeyboardInterrupt:
            break


if __name__ == "__main__":
    main()
