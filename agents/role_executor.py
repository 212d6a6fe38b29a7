import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from core.degrade import guarded_sync
from core.llm import ModelChainExhausted
from core.tuning import PromptTuning
from core.types import ExecutionSession, Role, RoleState
from core.utils import preview
from firewalls.constraints import ConstraintLimits
from firewalls.correction import correct
from firewalls.dual_model import cross_validate

logger = logging.getLogger(__name__)

CrossValidator = Callable[..., Awaitable[Any]]


class RoleExecutor:
    """
    Runs one role against one task for a session.

    Never raises to its caller: a role whose whole model chain fails is
    marked failed and contributes an empty string.
    """

    def __init__(
        self,
        invoker: Any,
        roles: Mapping[str, Role],
        session: ExecutionSession,
        limits: Optional[ConstraintLimits] = None,
        tuning: Optional[PromptTuning] = None,
        cross_validator: CrossValidator = cross_validate,
    ):
        self.invoker = invoker
        self.roles = roles
        self.session = session
        self.limits = limits or ConstraintLimits()
        self.tuning = tuning
        self.cross_validator = cross_validator

    def _augment(self, role_id: str, system_prompt: str) -> str:
        prompt = system_prompt + "\n\n" + self.session.style_prompt
        if self.session.constraint_prompt:
            prompt += "\n\n" + self.session.constraint_prompt
        if self.tuning is not None:
            prompt = self.tuning.apply(prompt, role_id)
        return prompt

    async def _dual(self, role: Role, prompt: str, user_message: str) -> Optional[str]:
        try:
            result = await self.cross_validator(
                self.invoker,
                user_message,
                prompt,
                role.models[:1],
                role.models[1:2],
                role_id=role.id,
            )
        except Exception as e:
            logger.warning("Cross-validation for %s failed, using single model: %s", role.id, e)
            return None

        self.session.cross_validation_results.append({
            "type": "crossValidation",
            "roleId": role.id,
            "consistent": result.consistent,
            "confidence": result.confidence,
        })
        return result.final_conclusion

    async def execute(
        self,
        role_id: str,
        system_prompt: Optional[str] = None,
        user_message: str = "",
        use_dual_model: bool = False,
    ) -> str:
        statuses = self.session.role_statuses
        statuses.set(role_id, RoleState.RUNNING, "分析中...")

        role = self.roles.get(role_id)
        if role is None:
            logger.warning("Unknown role id %s", role_id)
            return ""

        base_prompt = system_prompt if system_prompt is not None else role.system_prompt
        prompt = guarded_sync(
            f"{role_id} prompt augmentation", self._augment, role_id, base_prompt, default=base_prompt
        )

        content = None
        if use_dual_model and len(role.models) >= 2:
            content = await self._dual(role, prompt, user_message)

        if content is None:
            try:
                result = await self.invoker.invoke(role_id, prompt, user_message, role.models)
                content = result.content
            except ModelChainExhausted as e:
                statuses.set(role_id, RoleState.FAILED, str(e))
                return ""
            except Exception as e:
                logger.warning("Role %s failed: %s", role_id, e)
                statuses.set(role_id, RoleState.FAILED, str(e))
                return ""

        correction = guarded_sync(f"{role_id} correction", correct, content, self.limits)
        if correction is not None and correction.corrections:
            content = correction.corrected_content
            self.session.corrected_roles.append(role_id)

        statuses.set(role_id, RoleState.COMPLETED, preview(content))
        return content
