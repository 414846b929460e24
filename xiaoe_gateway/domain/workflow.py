"""Credit-metered generation workflow"""

import logging
from typing import List, Optional

from xiaoe_gateway.domain.exceptions import InsufficientCreditsError, SchemaMismatchError, UnauthorizedError
from xiaoe_gateway.domain.ledger import CreditLedger
from xiaoe_gateway.domain.models import StudentComment, StudentProfile, User
from xiaoe_gateway.domain.ports import TextGenerator, UserStore
from xiaoe_gateway.domain.prompts import build_alternatives_prompt, build_comment_prompt
from xiaoe_gateway.domain.templates import TemplateCommentWriter

logger = logging.getLogger(__name__)

TEMPLATE_MODEL = "template"
ALTERNATIVES_COST = 1


class MeteredGenerationWorkflow:
    """
    Orchestrates lookup, balance check, generation and debit.

    Ordering guarantees:
    - No vendor call is made for a request the balance cannot cover
    - No debit happens unless generation succeeded
    - The debit itself is a conditional atomic decrement, so requests racing
      for the same balance can never overspend it
    """

    def __init__(
        self,
        users: UserStore,
        generator: TextGenerator,
        templates: Optional[TemplateCommentWriter] = None,
        max_alternatives: int = 5,
    ):
        self.users = users
        self.ledger = CreditLedger(users)
        self.generator = generator
        self.templates = templates
        self.max_alternatives = max_alternatives

    def _authorize(self, requester: str, required: int) -> User:
        user = self.users.get(requester) if requester else None
        if user is None:
            raise UnauthorizedError("User is not logged in")
        if user.credits < required:
            raise InsufficientCreditsError(required=required, available=user.credits)
        return user

    def _uses_templates(self, model: str) -> bool:
        return self.templates is not None and model == TEMPLATE_MODEL

    async def generate(
        self,
        requester: str,
        profiles: List[StudentProfile],
        style: str,
        model: str,
    ) -> List[StudentComment]:
        """
        Generate one comment per profile and charge one credit per profile.

        Raises:
            UnauthorizedError: Requester is not a registered user
            InsufficientCreditsError: Balance below len(profiles), before or at debit time
            GenerationError: Vendor call or response handling failed (nothing charged)
        """
        required = len(profiles)
        self._authorize(requester, required)

        if self._uses_templates(model):
            comments = self.templates.write_comments(profiles, style)
        else:
            prompt = build_comment_prompt(profiles, style)
            comments = await self.generator.invoke(model, prompt, expect_strings=False)

        if len(comments) != required:
            raise SchemaMismatchError(f"Expected {required} comments, got {len(comments)}")

        remaining = self.ledger.debit(requester, required)
        logger.info(
            "Comments generated",
            extra={"username": requester, "model": model, "credits_used": required, "credits_remaining": remaining},
        )
        return comments

    async def generate_alternatives(
        self,
        requester: str,
        text: str,
        tag_context: str,
        style: str,
        model: str,
    ) -> List[str]:
        """Rephrase one sentence up to max_alternatives ways for a fixed cost of one credit"""
        self._authorize(requester, ALTERNATIVES_COST)

        if self._uses_templates(model):
            alternatives = self.templates.write_alternatives(text, tag_context, style, self.max_alternatives)
        else:
            prompt = build_alternatives_prompt(text, tag_context, style, self.max_alternatives)
            alternatives = await self.generator.invoke(model, prompt, expect_strings=True)

        if not alternatives:
            raise SchemaMismatchError("No usable alternatives returned")

        remaining = self.ledger.debit(requester, ALTERNATIVES_COST)
        logger.info(
            "Alternatives generated",
            extra={"username": requester, "model": model, "credits_used": ALTERNATIVES_COST, "credits_remaining": remaining},
        )
        return alternatives[: self.max_alternatives]
