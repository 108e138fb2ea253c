import logging
import uuid

from ..config import CUT_AND_PASTE_FRACTION, DEFAULT_BUFFER_STRATEGY
from ..domain.buffer import Buffer, BufferType
from ..utils.clock import SystemClock
from .buffer_strategies import get_strategy
from .critical_chain import CriticalChainAnalyzer

logger = logging.getLogger(__name__)


def new_buffer_id():
    return uuid.uuid4().hex


class BufferGenerator:
    """
    Sizes project and feeding buffers from a critical chain analysis and
    persists them.

    The project buffer covers the critical chain; each feeding chain gets a
    feeding buffer at its merge point. Sizes depend only on the task data, so
    regenerating unchanged data reproduces the same planned minutes under new
    buffer IDs.
    """

    def __init__(
        self,
        store,
        analyzer=None,
        clock=None,
        project_buffer_strategy=DEFAULT_BUFFER_STRATEGY,
        feeding_buffer_strategy=DEFAULT_BUFFER_STRATEGY,
        cut_and_paste_fraction=CUT_AND_PASTE_FRACTION,
        id_factory=new_buffer_id,
    ):
        self.store = store
        self.analyzer = analyzer or CriticalChainAnalyzer(store)
        self.clock = clock or SystemClock()
        self.project_buffer_strategy = get_strategy(
            project_buffer_strategy, cut_and_paste_fraction
        )
        self.feeding_buffer_strategy = get_strategy(
            feeding_buffer_strategy, cut_and_paste_fraction
        )
        self.id_factory = id_factory

    def size_chain(self, strategy, tasks, chain):
        """
        Size one chain's buffer.

        Returns:
            tuple: (planned minutes, name of the strategy that produced it)
        """
        planned = strategy.calculate_buffer_size(tasks, chain.duration_minutes)
        uses_fallback = getattr(strategy, "uses_fallback", None)
        if uses_fallback is not None and uses_fallback(tasks):
            return planned, strategy.fallback.get_name()
        return planned, strategy.get_name()

    def build_buffers(self, analysis, created_by=None):
        """
        Create unsaved ACTIVE buffers for an analysis.

        Args:
            analysis: CriticalChainAnalysis of the project
            created_by: Actor recorded on the buffers

        Returns:
            list: Project buffer first, then one feeding buffer per feeding chain
        """
        timestamp = self.clock.now_ms()
        project_id = analysis.project_id

        critical_chain = analysis.critical_chain
        planned, strategy_name = self.size_chain(
            self.project_buffer_strategy,
            analysis.chain_tasks(critical_chain),
            critical_chain,
        )
        buffers = [
            Buffer(
                id=self.id_factory(),
                project_id=project_id,
                buffer_type=BufferType.PROJECT,
                planned_minutes=planned,
                chain_task_ids=critical_chain.get_tasks(),
                strategy_name=strategy_name,
                created_by=created_by,
                created_at=timestamp,
            )
        ]

        for chain in analysis.feeding_chains:
            planned, strategy_name = self.size_chain(
                self.feeding_buffer_strategy, analysis.chain_tasks(chain), chain
            )
            buffers.append(
                Buffer(
                    id=self.id_factory(),
                    project_id=project_id,
                    buffer_type=BufferType.FEEDING,
                    planned_minutes=planned,
                    chain_task_ids=chain.get_tasks(),
                    feeding_path_task_id=chain.merge_task_id,
                    strategy_name=strategy_name,
                    created_by=created_by,
                    created_at=timestamp,
                )
            )

        return buffers

    def compute(self, project_id, created_by=None):
        """Analyse the project and return its buffers without saving them"""
        analysis = self.analyzer.analyze_project(project_id)
        return self.build_buffers(analysis, created_by)

    def regenerate(self, project_id, created_by=None):
        """
        Replace the project's ACTIVE buffers with freshly computed ones.

        Analysis runs first, so a cyclic graph or a missing project leaves the
        existing buffers untouched. The store archives the old set and inserts
        the new one in a single transaction.

        Returns:
            list: The newly saved buffers
        """
        buffers = self.compute(project_id, created_by)
        saved = self.store.save_buffers(project_id, buffers, self.clock.now_ms())
        logger.info(
            "Regenerated %d buffers for project %s (project buffer %.1f min)",
            len(saved),
            project_id,
            saved[0].planned_minutes,
        )
        return saved
