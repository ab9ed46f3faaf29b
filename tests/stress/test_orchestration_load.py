import time
from chatstack.MANAGERS.service_orchestrator import ServiceOrchestrator
from chatstack.MODELS.service_group import ServiceGroup
from chatstack.MODELS.stack_config import StackConfig

def test_stress_orchestration(tmp_path, make_runtime):
    """
    Stress test by orchestrating 200 groups against the in-memory runtime.
    """
    groups = [
        ServiceGroup(name=f"group_{i:03d}", definition_path=f"group_{i:03d}/docker-compose.yml", start_order=i + 1)
        for i in range(200)
    ]
    config = StackConfig(repo_dir=str(tmp_path), groups=groups, sweep_patterns=[])
    runtime = make_runtime(config)
    orchestrator = ServiceOrchestrator(config, runtime, sleep=lambda seconds: None)

    start_time = time.time()
    orchestrator.bring_up()
    orchestrator.tear_down()
    end_time = time.time()

    print(f"Cycled 200 groups in {end_time - start_time:.2f}s")

    assert runtime.calls_named("stack_up") == [g.name for g in groups]
    assert runtime.calls_named("stack_down") == [g.name for g in reversed(groups)]
    assert runtime.containers == {}

def test_large_stack_file_parsing():
    from chatstack.PARSERS.stack_parser import StackParser
    parser = StackParser(context={})

    # Generate a large stack file
    content = "groups:\n"
    for i in range(1000):
        content += f"  group_{i}:\n"
        content += f"    definition: group_{i}/docker-compose.yml\n"
        content += f"    order: {i + 1}\n"

    start_time = time.time()
    config = parser.parse_from_string(content)
    end_time = time.time()

    assert len(config.groups) == 1000
    assert end_time - start_time < 5.0
