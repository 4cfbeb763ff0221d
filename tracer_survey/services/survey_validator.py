"""Question graph validator for structural analysis.

This module validates the stored structure of a survey's question graph to
ensure:
- Questions nest at most one level deep (parent/child, never deeper)
- Parents belong to the same survey as their children
- Branching rules stay inside the survey and use the trigger's own options
- Branching rules contain no circular references
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from tracer_survey.services.errors import GraphStructureError
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class GraphStructure:
    """Flat view of a survey's graph structure, as stored.

    Attributes:
        survey_id: Survey being validated
        question_survey: Survey id of every question involved (including
            parents living in other surveys)
        question_parent: Parent id of every question involved
        option_owner: Question id declaring each option
        triggered_options: Options flagged ``is_triggered``
        rules: Branching rules as (trigger, option, target) triples
    """
    survey_id: str
    question_survey: Dict[str, str] = field(default_factory=dict)
    question_parent: Dict[str, Optional[str]] = field(default_factory=dict)
    option_owner: Dict[str, str] = field(default_factory=dict)
    triggered_options: Set[str] = field(default_factory=set)
    rules: List[Tuple[str, str, str]] = field(default_factory=list)


class GraphValidator:
    """Service for validating question graph structure."""

    @staticmethod
    def validate(structure: GraphStructure) -> List[str]:
        """Validate graph structure.

        Checks:
        1. A parent never has a parent itself (depth <= 2)
        2. A parent belongs to the same survey as its child
        3. Rule endpoints are questions of the survey
        4. A rule's option belongs to the trigger (or to its matrix parent)
        5. Rules do not form a cycle

        Args:
            structure: Flat graph structure

        Returns:
            List of warnings (trigger options not flagged is_triggered)

        Raises:
            GraphStructureError: If structure is invalid
        """
        errors = []
        errors.extend(GraphValidator._check_nesting(structure))
        errors.extend(GraphValidator._check_rules(structure))

        if not errors and GraphValidator._has_cycles(GraphValidator._build_rule_graph(structure)):
            errors.append("Branching rules contain circular references")

        if errors:
            logger.warning(f"Survey {structure.survey_id} graph rejected: {errors}")
            raise GraphStructureError(errors)

        warnings = [
            f"Option {option_id} triggers question {target_id} but is not flagged is_triggered"
            for _, option_id, target_id in structure.rules
            if option_id not in structure.triggered_options
        ]
        for warning in warnings:
            logger.warning(warning)

        logger.info(f"Survey {structure.survey_id} graph validated successfully")
        return warnings

    @staticmethod
    def _check_nesting(structure: GraphStructure) -> List[str]:
        errors = []
        for question_id, parent_id in structure.question_parent.items():
            if parent_id is None:
                continue
            if structure.question_survey.get(question_id) != structure.survey_id:
                continue
            if parent_id == question_id:
                errors.append(f"Question {question_id} cannot be its own parent")
                continue
            if parent_id not in structure.question_parent:
                errors.append(f"Question {question_id} references unknown parent {parent_id}")
                continue
            if structure.question_parent[parent_id] is not None:
                errors.append(
                    f"Question {question_id} cannot be nested under {parent_id}, "
                    f"which already has a parent"
                )
            if structure.question_survey.get(parent_id) != structure.survey_id:
                errors.append(
                    f"Question {question_id} cannot be nested under {parent_id} "
                    f"from another survey"
                )
        return errors

    @staticmethod
    def _check_rules(structure: GraphStructure) -> List[str]:
        errors = []
        in_survey = {
            qid for qid, sid in structure.question_survey.items() if sid == structure.survey_id
        }
        for trigger_id, option_id, target_id in structure.rules:
            missing = [qid for qid in (trigger_id, target_id) if qid not in in_survey]
            if missing:
                errors.append(f"Branching rule references questions outside the survey: {missing}")
                continue
            if trigger_id == target_id:
                errors.append(f"Question {trigger_id} cannot trigger itself")
                continue
            owner = structure.option_owner.get(option_id)
            allowed = {trigger_id, structure.question_parent.get(trigger_id)}
            if owner is None or owner not in allowed:
                errors.append(
                    f"Branching rule option {option_id} does not belong to trigger {trigger_id}"
                )
        return errors

    @staticmethod
    def _build_rule_graph(structure: GraphStructure) -> Dict[str, List[str]]:
        """Build adjacency list trigger -> targets."""
        graph = defaultdict(list)
        for trigger_id, _, target_id in structure.rules:
            graph[trigger_id].append(target_id)
        return graph

    @staticmethod
    def _has_cycles(graph: Dict[str, List[str]]) -> bool:
        """Detect cycles in the rule graph using DFS from every node.

        Args:
            graph: Adjacency list representation

        Returns:
            True if cycle detected, False otherwise
        """
        visited = set()
        rec_stack = set()

        def dfs(node: str) -> bool:
            """Depth-first search with recursion stack tracking."""
            visited.add(node)
            rec_stack.add(node)

            for neighbor in graph.get(node, []):
                if neighbor not in visited:
                    if dfs(neighbor):
                        return True
                elif neighbor in rec_stack:
                    # Back edge found = cycle
                    return True

            rec_stack.remove(node)
            return False

        return any(dfs(node) for node in list(graph) if node not in visited)
