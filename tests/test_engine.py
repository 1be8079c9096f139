"""End-to-end tests for the PrivacyEngine facade."""

import asyncio

from pseudovault import Category, Config, PrivacyEngine, Vault

from conftest import FakeTransport

SCENARIO = "Il sig. Mario Rossi, email mario.rossi@example.com, CF MRSRSS85M01H501Z"


def engine_with(config, *answers):
    transport = FakeTransport(list(answers))
    return PrivacyEngine(config=config, transport=transport), transport


# =============================================================================
# ANONYMIZE / RESTORE
# =============================================================================

def test_scenario_with_silent_oracle(fast_config):
    engine, transport = engine_with(fast_config, "[]")
    result = engine.anonymize(SCENARIO, Vault())

    assert result.anonymized == "Il sig. [FULL_NAME_1], email [EMAIL_1], CF MRSRSS85M01H501Z"
    assert result.new_vault.to_dict() == {
        "[EMAIL_1]": "mario.rossi@example.com",
        "[FULL_NAME_1]": "Mario Rossi",
    }
    assert result.has_pii
    assert engine.restore(result.anonymized, result.new_vault) == SCENARIO
    assert transport.calls == 1


def test_scenario_with_oracle_finding(fast_config):
    engine, _ = engine_with(fast_config, '[{"value": "MRSRSS85M01H501Z", "category": "FISCAL_CODE"}]')
    result = engine.anonymize(SCENARIO)

    assert result.anonymized == "Il sig. [FULL_NAME_1], email [EMAIL_1], CF [FISCAL_CODE_1]"
    assert result.restore(result.anonymized) == SCENARIO


def test_vault_is_updated_in_place_and_reused(fast_config):
    engine, _ = engine_with(fast_config, "[]")
    vault = Vault()

    engine.anonymize(SCENARIO, vault)
    result = engine.anonymize("Mario Rossi ha risposto.", vault)

    assert result.new_vault is vault
    assert result.anonymized == "[FULL_NAME_1] ha risposto."
    assert len(vault) == 2


def test_mapping_vault_is_copied(fast_config):
    engine, _ = engine_with(fast_config, "[]")
    existing = {"[FULL_NAME_1]": "Anna Bianchi"}

    result = engine.anonymize("Mario Rossi scrive ad Anna Bianchi", existing)

    assert existing == {"[FULL_NAME_1]": "Anna Bianchi"}
    assert result.anonymized == "[FULL_NAME_2] scrive ad [FULL_NAME_1]"


def test_medium_candidates_used_without_oracle():
    config = Config()
    config.discovery.provider = "none"
    engine = PrivacyEngine(config=config)

    result = engine.anonymize("Chiamare il 333 1234567")

    assert result.anonymized == "Chiamare il [PHONE_NUMBER_1]"
    assert [f.category for f in result.findings] == [Category.PHONE_NUMBER]


def test_medium_candidates_need_confirmation_when_oracle_answers(fast_config):
    engine, _ = engine_with(fast_config, '[{"value": "Mario Rossi", "category": "FULL_NAME"}]')
    result = engine.anonymize("Mario Rossi, tel. 333 1234567")
    assert result.anonymized == "[FULL_NAME_1], tel. 333 1234567"


def test_surface_variants_share_a_token(fast_config):
    fast_config.discovery.model = "llama3.1:70b"
    engine, _ = engine_with(
        fast_config,
        '[{"value": "Mario Rossi", "category": "FULL_NAME"}, {"value": "Sig. Rossi", "category": "FULL_NAME"}]',
        '{"Sig. Rossi": "Mario Rossi"}',
    )

    result = engine.anonymize("Mario Rossi ha firmato. Il Sig. Rossi conferma.")

    assert result.anonymized == "[FULL_NAME_1] ha firmato. Il [FULL_NAME_1] conferma."
    assert result.aliases == {"Sig. Rossi": "[FULL_NAME_1]"}
    assert result.new_vault.to_dict() == {"[FULL_NAME_1]": "Mario Rossi"}


def test_surface_form_crash_keeps_discovered_tokens(fast_config):
    fast_config.discovery.model = "llama3.1:70b"

    def answer(request):
        if "Text:\n" in request.messages[-1]["content"]:
            return '[{"value": "Mario Rossi", "category": "FULL_NAME"}, {"value": "Sig. Rossi", "category": "FULL_NAME"}]'
        return RuntimeError("unexpected transport failure")

    engine = PrivacyEngine(config=fast_config, transport=FakeTransport(answer))
    result = engine.anonymize("Mario Rossi ha firmato. Il Sig. Rossi conferma.")

    assert result.anonymized == "[FULL_NAME_1] ha firmato. Il [FULL_NAME_2] conferma."
    assert result.aliases == {}
    assert result.restore(result.anonymized) == "Mario Rossi ha firmato. Il Sig. Rossi conferma."


def test_empty_text(fast_config):
    engine, transport = engine_with(fast_config, "[]")
    result = engine.anonymize("")
    assert result.anonymized == ""
    assert not result.has_pii
    assert engine.detect("   ") == []
    assert transport.calls == 0


# =============================================================================
# ASYNC
# =============================================================================

def test_async_round_trip(fast_config):
    engine, _ = engine_with(fast_config, "[]")

    async def run():
        vault = Vault()
        result = await engine.anonymize_async(SCENARIO, vault)
        restored = await engine.restore_async(result.anonymized, vault)
        findings = await engine.detect_async(SCENARIO)
        return result, restored, findings

    try:
        result, restored, findings = asyncio.run(run())
    finally:
        engine.close()

    assert result.anonymized == "Il sig. [FULL_NAME_1], email [EMAIL_1], CF MRSRSS85M01H501Z"
    assert restored == SCENARIO
    assert {f.value for f in findings} == {"Mario Rossi", "mario.rossi@example.com"}


# =============================================================================
# STATUS
# =============================================================================

def test_stack_status(fast_config):
    with PrivacyEngine(config=fast_config, transport=FakeTransport(["[]"])) as engine:
        status = engine.get_stack_status()
    assert status["discovery"]["provider"] == "ollama"
    assert status["discovery"]["tier"] == "light"
    assert status["discovery"]["chunk_chars"] == fast_config.discovery.light_chunk_chars
    assert "scanner" in status
    assert status["dictionaries"]["first_names"] > 0
