"""The ``<script>`` processor.

Runs a block of code in one of the registered scripting languages. The
script sees every variable of the current context by name (as plain Python
values, see ``Variable.wrapped_object``). Names the script defines or rebinds
are written back as local variables of the current scope.

Example::

    <script return="total * 2"><![CDATA[
        total = sum(int(price) for price in prices)
    ]]></script>
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.processors.base import BaseProcessor
from harvest.processors.registry import processor
from harvest.variables import EMPTY, Variable, create_variable

if TYPE_CHECKING:
    from harvest.scraper import Scraper


@processor("script", attributes=("language", "return"))
class ScriptProcessor(BaseProcessor):
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        language = self.evaluate_attr("language", scraper, context)
        engine = scraper.script_engine(language or None)
        source = self.body_to_string(scraper, context)
        if scraper.is_stopped:
            return EMPTY

        if source.strip():
            defined = engine.execute(source, context.as_script_environment())
            for name, value in defined.items():
                context.set_local_var(name, value)
            scraper.logger.debug(
                f"Script defined {', '.join(sorted(defined)) or 'nothing'}"
            )

        return_expression = self.element_def.get("return")
        if not return_expression or not return_expression.strip():
            return EMPTY
        return create_variable(
            engine.evaluate(return_expression, context.as_script_environment())
        )
