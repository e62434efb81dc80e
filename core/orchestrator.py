"""Plugin orchestrator: the service object behind the HTTP routes and the CLI.

create: name -> (requirements || blueprint) -> file list -> draft ->
        consistency pass -> validation -> optional build loop
fix:    relevance filter -> fixer -> normalized replacements
"""

import time

from agents.consistency import ConsistencyChecker
from agents.fixer import FixerAgent
from agents.generator import GeneratorAgent
from agents.planner import PlannerAgent
from agents.validator import PluginValidator, infer_plugin_name
from core.build_store import BuildStore
from core.builder import BuildOrchestrator
from core.cache import TTLCache, fix_key, generation_key
from core.compiler import MavenCompiler
from core.state import GenerationResult
from utils.folder_naming import new_build_id
from utils.llm import LLMClient
from utils.logger import get_logger

logger = get_logger("orchestrator")


class Orchestrator:
    """Constructed once per process; every collaborator can be swapped for a stub."""

    def __init__(self, llm=None, cache=None, store=None, compiler=None, max_attempts=None,
                 ai_validation=None):
        self.llm = llm or LLMClient()
        self.cache = cache if cache is not None else TTLCache()
        self.store = store or BuildStore()
        self.compiler = compiler or MavenCompiler()
        self.planner = PlannerAgent(self.llm)
        self.generator = GeneratorAgent(self.llm)
        self.consistency = ConsistencyChecker(self.llm)
        self.validator = PluginValidator(self.llm, ai_check=ai_validation)
        self.fixer = FixerAgent(self.llm)
        self.builder = BuildOrchestrator(self.compiler, self.fixer, self.store,
                                         max_attempts=max_attempts)

    async def generate(self, prompt):
        """Produce a validated FileTree for ``prompt``. Returns (plugin_name, files, blueprint, cached)."""
        key = generation_key(prompt)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached plugin result")
            return infer_plugin_name(cached), cached, "", True

        plugin_name = await self.planner.plugin_name(prompt)
        requirements, blueprint = await self.planner.plan(prompt, plugin_name)
        file_list = await self.planner.file_list(blueprint, plugin_name)
        files = await self.generator.run(plugin_name, blueprint, requirements, file_list, prompt)
        await self.consistency.run(files)
        files = await self.validator.validate(files, plugin_name, prompt)

        self.cache.put(key, files)
        return plugin_name, files, blueprint, False

    async def create(self, prompt, compile=False, build_id=None):
        """Generate a plugin and optionally build it. Returns a GenerationResult."""
        started = time.monotonic()
        build_id = build_id or new_build_id()

        plugin_name, files, blueprint, cached = await self.generate(prompt)

        build = None
        if compile:
            self.store.create(build_id, prompt)
            self.store.mark_pending(build_id, plugin_name)
            build = await self.builder.run(files, build_id, plugin_name)

        return GenerationResult(
            plugin_name=plugin_name,
            files=files,
            build_id=build_id,
            blueprint=blueprint,
            build=build,
            processing_time=time.monotonic() - started,
            cached=cached,
        )

    async def create_in_background(self, prompt, compile, build_id):
        """Body of an async-mode request: results land in the build directory only."""
        try:
            result = await self.create(prompt, compile=compile, build_id=build_id)
            if not compile:
                self.store.write_files(build_id, result.files)
                self.store.write_result(build_id, {
                    "status": "completed",
                    "success": True,
                    "jarPath": None,
                    "pluginName": result.plugin_name,
                })
            logger.info("Background processing for build %s completed", build_id)
        except Exception as e:
            logger.exception("Background processing error for %s", build_id)
            self.store.write_result(build_id, {
                "status": "failed",
                "success": False,
                "jarPath": None,
                "error": str(e),
            })

    async def build(self, files, build_id=None, plugin_name=None):
        """Run the build loop on an existing FileTree."""
        build_id = build_id or new_build_id()
        plugin_name = plugin_name or infer_plugin_name(files)
        self.store.create(build_id)
        return await self.builder.run(files, build_id, plugin_name)

    async def fix(self, error_text, files):
        """Return (fixed_files, cached). fixed_files holds only rewritten paths."""
        key = fix_key(error_text, files.keys())
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached fix result")
            return cached, True

        outcome = await self.fixer.fix(error_text, files)
        if outcome.changed:
            self.cache.put(key, outcome.files)
        return outcome.files, False
