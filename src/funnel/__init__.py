"""
Concept Funnel: adaptive content targeting for self-study practice.

Components:
- store: Lazily initialized per-concept mastery state
- priority: Urgency of practice from Beta pseudo-counts
- relevance: How well a candidate item tests a concept
- selector: Explore/focus target assignment for a batch
- rating: Mastery updates from correctness, rating, latency and tutor use
- batch: Filling target slots from candidate pools
- snapshot: Read-only progress summary
- serialization: State <-> plain dicts for the storage collaborator
"""
from src.funnel.models import (
    AnkiRating,
    CandidateItem,
    ConceptState,
    FunnelState,
    TargetSelection,
    normalize_concept_key,
)
from src.funnel.store import (
    build_guide_concept_universe,
    default_funnel_state,
    ensure_concept_state,
    merge_extra_concepts,
)
from src.funnel.priority import compute_priority, expected_mastery, mastery_uncertainty
from src.funnel.relevance import pick_best_for_target, rank_candidates, score_question_for_concept
from src.funnel.selector import TargetSelector, select_targets
from src.funnel.rating import (
    RatingOutcome,
    apply_anki_rating,
    compute_success_weight,
    record_tutor_touch,
)
from src.funnel.batch import (
    BatchPlan,
    FunnelBatchMeta,
    accept_generated,
    build_generation_instruction,
    plan_batch,
)
from src.funnel.snapshot import ConceptProgress, MasteryLevel, MasterySnapshot, mastery_snapshot
from src.funnel.serialization import dump_funnel_state, load_funnel_state, to_mastery_rows
from src.funnel.tuning import FunnelConfig, get_funnel_config

__all__ = [
    # Models
    "AnkiRating",
    "CandidateItem",
    "ConceptState",
    "FunnelState",
    "TargetSelection",
    "normalize_concept_key",
    # Store
    "build_guide_concept_universe",
    "default_funnel_state",
    "ensure_concept_state",
    "merge_extra_concepts",
    # Scoring
    "compute_priority",
    "expected_mastery",
    "mastery_uncertainty",
    "pick_best_for_target",
    "rank_candidates",
    "score_question_for_concept",
    # Selection
    "TargetSelector",
    "select_targets",
    # Rating
    "RatingOutcome",
    "apply_anki_rating",
    "compute_success_weight",
    "record_tutor_touch",
    # Batch
    "BatchPlan",
    "FunnelBatchMeta",
    "accept_generated",
    "build_generation_instruction",
    "plan_batch",
    # Snapshot
    "ConceptProgress",
    "MasteryLevel",
    "MasterySnapshot",
    "mastery_snapshot",
    # Serialization
    "dump_funnel_state",
    "load_funnel_state",
    "to_mastery_rows",
    # Config
    "FunnelConfig",
    "get_funnel_config",
]
