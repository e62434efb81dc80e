"""Shared fakes: a scripted model and a scripted Maven."""

import os

import pytest

from core.state import CompileOutput
from utils.llm import LLMError

# First-line phrases of each prompt template, used to route fake answers.
PROMPT_MARKERS = {
    "name": "MOST SPECIFIC name",
    "refine": "requirements analyst",
    "blueprint": "plugin architect",
    "file_list": "extract all files that need to be created",
    "generate_files": "Implement a complete Minecraft plugin",
    "generate_single": "Create a single Minecraft plugin file",
    "consistency": "consistency issues",
    "validate": "Minecraft plugin validator",
    "fix": "build error expert",
}

MAIN_PATH = "src/main/java/com/pegasus/healonjoin/HealOnJoin.java"

MAIN_JAVA = """package com.pegasus.healonjoin;

import org.bukkit.event.EventHandler;
import org.bukkit.event.Listener;
import org.bukkit.event.player.PlayerJoinEvent;
import org.bukkit.plugin.java.JavaPlugin;

public class HealOnJoin extends JavaPlugin implements Listener {

    @Override
    public void onEnable() {
        getServer().getPluginManager().registerEvents(this, this);
    }

    @EventHandler
    public void onJoin(PlayerJoinEvent event) {
        event.getPlayer().setHealth(20.0);
    }
}
"""

POM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<project>
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.pegasus</groupId>
    <artifactId>healonjoin</artifactId>
    <version>1.0</version>
</project>"""

PLUGIN_YML = "name: HealOnJoin\nversion: 1.0\nmain: com.pegasus.healonjoin.HealOnJoin\napi-version: '1.19'"


def file_block(path, content):
    return f"---FILE_START:{path}---\n{content}\n---FILE_END---"


def plugin_tree():
    return {
        "pom.xml": POM_XML,
        "src/main/resources/plugin.yml": PLUGIN_YML,
        MAIN_PATH: MAIN_JAVA,
    }


class FakeLLM:
    """Answers by prompt kind. A missing kind, or an exception value, raises."""

    def __init__(self, **answers):
        self.answers = answers
        self.calls = []

    def kinds(self):
        return [kind for kind, _, _ in self.calls]

    async def generate(self, prompt, model, system=None):
        kind = next((k for k, marker in PROMPT_MARKERS.items() if marker in prompt), "unknown")
        self.calls.append((kind, prompt, model))
        answer = self.answers.get(kind)
        if answer is None:
            raise LLMError(f"no scripted answer for {kind}")
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return answer(prompt)
        return answer


FAILED_OUTPUT = CompileOutput(
    1,
    "[INFO] Compiling 1 source file\n"
    "[ERROR] /build/src/main/java/com/pegasus/healonjoin/HealOnJoin.java:[12,9] cannot find symbol\n"
    "[INFO] BUILD FAILURE\n",
    "",
)


class FakeCompiler:
    """Plays back a list of outcomes. True means success with a jar on disk."""

    def __init__(self, outcomes, jar_name="healonjoin-1.0.jar"):
        self.outcomes = list(outcomes)
        self.jar_name = jar_name
        self.calls = []
        self.error_runs = 0

    async def compile(self, directory, skip_shade=False):
        self.calls.append((directory, skip_shade))
        outcome = self.outcomes.pop(0) if self.outcomes else False
        if isinstance(outcome, CompileOutput):
            return outcome
        if outcome:
            target = os.path.join(directory, "target")
            os.makedirs(target, exist_ok=True)
            with open(os.path.join(target, self.jar_name), "wb") as fp:
                fp.write(b"PK\x03\x04")
            return CompileOutput(0, "[INFO] BUILD SUCCESS\n", "")
        return FAILED_OUTPUT

    async def compile_errors(self, directory):
        self.error_runs += 1
        return CompileOutput(1, "[ERROR] HealOnJoin.java: ';' expected\n", "")


def healing_llm(**overrides):
    """A model that answers every pipeline step for the heal-on-join plugin."""
    answers = {
        "name": "HealOnJoin",
        "refine": "Heal every player to full health when they join.",
        "blueprint": "PLUGIN NAME: HealOnJoin\nMain class listens for PlayerJoinEvent.",
        "file_list": '["pom.xml", "src/main/resources/plugin.yml", "%s"]' % MAIN_PATH,
        "generate_files": "\n\n".join(file_block(p, c) for p, c in plugin_tree().items()),
        "consistency": '{"issues": []}',
        "validate": "NO_ERRORS_FOUND",
    }
    answers.update(overrides)
    return FakeLLM(**answers)


@pytest.fixture
def store(tmp_path):
    from core.build_store import BuildStore
    return BuildStore(str(tmp_path / "plugins"))
