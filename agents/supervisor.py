import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.degrade import guarded_sync
from core.events import StreamEmitter
from core.progress import ProgressTracker, TOTAL_STEPS
from core.roles import DEPTH_CONFIGS, ROLES, STYLE_PROMPTS, USER_PROFILE, UserProfile
from core.tuning import PromptTuning, learning_report
from core.types import (
    AnalysisMode,
    Depth,
    ExecutionSession,
    Role,
    RoleState,
    RoleStatusBoard,
    SessionRecord,
    Style,
)
from firewalls import (
    AuditFirewall,
    Auditor,
    ConstraintLimits,
    CorrectionFirewall,
    DualModelFirewall,
    PreCheckResult,
    PreConstraintValidator,
    PrefillSearchFirewall,
    Triangulator,
    TriangulationFirewall,
    VerificationPipeline,
    check_time_validity,
    constraint_satisfaction,
    detect_contradictions,
    source_credibility,
    source_independence,
    visualize_risk,
)
from storage.memory import MemoryStore, SessionCache

from .intent import intent_or_default
from .modes import ModeDispatcher, ModeOutcome
from .role_executor import RoleExecutor

logger = logging.getLogger(__name__)

ERROR_CODE = "SYS_001"
DECISION_INPUT_LIMIT = 5000

MODE_NAMES = {
    AnalysisMode.FORWARD: "正推",
    AnalysisMode.REVERSE: "倒推",
    AnalysisMode.MIXED: "混合",
}

MODE_BANNERS = {
    AnalysisMode.FORWARD: "【正推模式】从现有条件推导可行项目...",
    AnalysisMode.REVERSE: "【倒推模式】分析项目可行性...",
    AnalysisMode.MIXED: "【混合模式】正在并行执行正推和倒推分析...",
}


@dataclass
class AnalysisRequest:
    """One analysis request as accepted by the transport."""
    user_input: str
    depth: Depth = Depth.STANDARD
    style: Style = Style.BUSINESS
    use_cache: bool = True
    explain_terms: bool = True


def build_pipeline(search_client: Any, limits: ConstraintLimits) -> VerificationPipeline:
    return VerificationPipeline([
        PrefillSearchFirewall(search_client),
        TriangulationFirewall(Triangulator(search_client)),
        DualModelFirewall(),
        CorrectionFirewall(),
        AuditFirewall(Auditor(search_client, limits)),
    ])


class AnalysisSupervisor:
    """
    Drives one analysis session from the raw question to the final result.

    Responsibilities:
    - Short-circuit on a fresh cached result
    - Run the pre-check, the five firewalls and the mode strategy in order
    - Stream progress for steps 0..12 and exactly one terminal event
    - Record the finished session and cache its result

    Every dependency failure is degraded locally; only an error escaping
    the whole run becomes an `error` event.
    """

    def __init__(
        self,
        invoker: Any,
        search_client: Any,
        roles: Optional[List[Role]] = None,
        cache: Optional[SessionCache] = None,
        store: Optional[MemoryStore] = None,
        profile: UserProfile = USER_PROFILE,
        cache_ttl_seconds: float = 3600,
        term_explainer: Optional[Callable[[str], str]] = None,
    ):
        self.invoker = invoker
        self.search_client = search_client
        self.roles = list(roles if roles is not None else ROLES)
        self.roles_by_id = {role.id: role for role in self.roles}
        self.cache = cache
        self.store = store
        self.profile = profile
        self.limits = ConstraintLimits.from_profile(profile)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.term_explainer = term_explainer
        self.validator = PreConstraintValidator(profile)
        self.pipeline = build_pipeline(search_client, self.limits)

    def new_session(self, request: AnalysisRequest) -> ExecutionSession:
        return ExecutionSession(
            raw_input=request.user_input,
            depth=DEPTH_CONFIGS[request.depth],
            style_prompt=STYLE_PROMPTS[request.style],
            role_statuses=RoleStatusBoard([role.id for role in self.roles]),
        )

    async def run(self, request: AnalysisRequest, emitter: StreamEmitter) -> Optional[Dict[str, Any]]:
        """
        Run a session, publishing its events to the emitter.

        Returns the result (cached or fresh), or None when the run failed.
        """
        session = self.new_session(request)
        try:
            if request.use_cache and self.cache is not None:
                cached = self.cache.get(request.user_input)
                if cached is not None:
                    emitter.cached(cached)
                    return cached

            result = await self._analyze(session, request, emitter)
            emitter.complete(result)
            return result
        except Exception as e:
            logger.exception("Analysis session %s failed", session.session_id)
            emitter.error(ERROR_CODE, str(e) or "系统错误", repr(e))
            return None
        finally:
            emitter.close()

    def _progress(self, session: ExecutionSession, tracker: ProgressTracker, emitter: StreamEmitter,
                  index: int, status: str) -> None:
        guarded_sync("progress tracker", tracker.start_step, index, status)
        progress = guarded_sync("progress tracker", tracker.get_progress, default={})
        emitter.progress(
            index,
            status,
            progress=round(index / TOTAL_STEPS * 100),
            elapsedMs=progress.get("elapsed_ms", session.elapsed_ms),
            roleStatuses=session.role_statuses.snapshot(),
        )

    async def _analyze(self, session: ExecutionSession, request: AnalysisRequest,
                       emitter: StreamEmitter) -> Dict[str, Any]:
        tracker = ProgressTracker()
        statuses = session.role_statuses

        def progress(index: int, status: str) -> None:
            self._progress(session, tracker, emitter, index, status)

        progress(0, "正在初始化系统...")
        tuning = None
        if self.store is not None:
            tuning = guarded_sync("prompt tuning", PromptTuning.from_feedback, self.store.get_feedback())
        executor = RoleExecutor(self.invoker, self.roles_by_id, session, self.limits, tuning)

        progress(1, "正在执行事前约束验证...")
        pre_check = guarded_sync(
            "pre-constraint validation", self.validator.validate, session.raw_input,
            default_factory=lambda: PreCheckResult(passed=True),
        )
        session.constraint_prompt = pre_check.constraint_prompt

        progress(2, "【防火墙1】正在进行预填充搜索...")
        statuses.set("intent_analyst", RoleState.RUNNING, "正在搜索最新数据...")
        await self.pipeline.run_stage(1, session)
        statuses.set(
            "intent_analyst", RoleState.COMPLETED,
            f"搜索完成，获取{len(session.search_results.combined)}条数据",
        )

        progress(3, "【防火墙2】正在执行三角验证...")
        await self.pipeline.run_stage(2, session)

        progress(4, "正在识别用户意图...")
        intent_role = self.roles_by_id.get("intent_analyst")
        if intent_role is not None:
            answer = await executor.execute("intent_analyst", intent_role.system_prompt, session.raw_input)
            intent = intent_or_default(answer)
            if answer:
                statuses.set("intent_analyst", RoleState.COMPLETED, f"识别结果：{intent.label}")
        else:
            intent = intent_or_default("")
        session.mode = intent.mode
        session.intent_project = intent.project
        logger.info("Session %s intent: %s %r", session.session_id, intent.mode.value, intent.project)

        progress(5, "正在分析数据来源...")
        citations = session.search_results.combined
        independence = guarded_sync(
            "source independence", source_independence, citations[: session.depth.max_search_results],
            default_factory=lambda: {"overallIndependence": 0, "isIndependent": False},
        )
        credibility = guarded_sync(
            "source credibility", source_credibility, citations,
            default_factory=lambda: {"score": 0, "breakdown": {}},
        )

        progress(6, f"正在执行{MODE_NAMES[session.mode]}分析...")
        dispatcher = ModeDispatcher.default(
            self.roles, on_start=lambda mode: progress(7, MODE_BANNERS[mode])
        )
        outcome: ModeOutcome = await dispatcher.dispatch(session, executor)
        session.aggregated_content = outcome.content
        content = outcome.content
        contradictions = guarded_sync("contradiction detection", detect_contradictions, content, self.limits)

        progress(8, "【防火墙5】正在执行后验审计...")
        await self.pipeline.run_sequence([3, 4], session)
        statuses.set("quality_verifier", RoleState.RUNNING, "正在审计...")
        await self.pipeline.run_stage(5, session)
        if session.audit:
            statuses.set("quality_verifier", RoleState.COMPLETED, f"审计完成，评分{session.audit['overallScore']}分")
        else:
            statuses.set("quality_verifier", RoleState.COMPLETED, "审计完成")

        progress(9, "正在执行时效检查...")
        time_validity = guarded_sync("time validity", check_time_validity, content)

        progress(10, "正在生成最终决策...")
        final_decision = outcome.final_decision
        decision_role = self.roles_by_id.get("decision_advisor")
        if not final_decision and content and decision_role is not None:
            final_decision = await executor.execute(
                "decision_advisor",
                decision_role.system_prompt,
                f"基于以下分析，给出最终决策：\n\n{content[:DECISION_INPUT_LIMIT]}",
                use_dual_model=True,
            )
        if not final_decision:
            final_decision = content

        progress(11, "正在生成报告...")
        if request.explain_terms and self.term_explainer is not None:
            final_decision = guarded_sync("term explanation", self.term_explainer, final_decision, default=final_decision)
            content = guarded_sync("term explanation", self.term_explainer, content, default=content)
        risk = guarded_sync("risk visualization", visualize_risk, content)
        satisfaction = guarded_sync(
            "constraint satisfaction", constraint_satisfaction, content, self.limits,
            default_factory=lambda: {"score": 0, "details": {}},
        )

        learning = None
        if self.store is not None:
            report = guarded_sync("learning report", learning_report, self.store.get_feedback(), top_roles=5)
            if report is not None:
                learning = {"overallMetrics": report["overall"], "rolePerformance": report["byRole"]}

        statuses.skip_pending()
        progress(12, "分析完成！")

        result = {
            "sessionId": session.session_id,
            "mode": session.mode.value,
            "intentProject": session.intent_project,
            "finalDecision": final_decision,
            "report": content,
            "audit": session.audit,
            "contradictions": contradictions,
            "timeValidity": time_validity,
            "riskVisualization": risk,
            "constraintSatisfaction": satisfaction,
            "sourceCredibility": credibility,
            "sourceIndependence": independence,
            "mixedModeResult": outcome.mixed_result.to_dict() if outcome.mixed_result else None,
            "preConstraint": pre_check.to_dict(),
            "firewallVerification": self.pipeline.summary(session),
            "roleStatuses": statuses.snapshot(),
            "learningVisualization": learning,
            "metadata": {
                "depth": request.depth.value,
                "style": request.style.value,
                "analysisTimeMs": session.elapsed_ms,
                "modeFallback": session.mode_fallback,
            },
        }

        if self.store is not None:
            record = SessionRecord(session.session_id, session.raw_input, session.mode.value, result)
            guarded_sync("session history", self.store.save_session, record)
        if self.cache is not None:
            self.cache.put(session.raw_input, result, self.cache_ttl_seconds)
        return result


def create_supervisor(app_config: Any = None, **kwargs) -> AnalysisSupervisor:
    """Build a supervisor wired to the configured model backends and search providers."""
    from config import config as default_config
    from core.llm import ModelInvoker
    from core.search import SearchClient
    from storage.memory import cache_store, memory_store

    cfg = app_config or default_config
    invoker = ModelInvoker(
        api_keys=cfg.api_keys,
        timeout=cfg.model_timeout_seconds,
        temperature=cfg.model_temperature,
        max_tokens=cfg.model_max_tokens,
    )
    search_client = SearchClient(
        tavily_api_key=cfg.tavily_api_key,
        serper_api_key=cfg.serper_api_key,
        timeout=cfg.model_timeout_seconds,
    )
    kwargs.setdefault("cache", SessionCache(cache_store))
    kwargs.setdefault("store", memory_store)
    kwargs.setdefault("cache_ttl_seconds", cfg.cache_ttl_seconds)
    return AnalysisSupervisor(invoker, search_client, **kwargs)
