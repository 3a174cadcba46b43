"""
Tests for the proxy lifecycle stages.
"""

import asyncio
import shutil
import tempfile
import unittest
from pathlib import Path

import yaml
from fakes import FakeEngine, FakeProber, docker_ports

from edgehost.config import AppSpec, ProxyConfig
from edgehost.definition import PortBinding, ProxyRef, build_definition
from edgehost.errors import LaunchError
from edgehost.pipeline import ProxyPipeline
from edgehost.reconciler import ProxyState


class TestProxyPipeline(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = ProxyConfig(config_dir=self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def pipeline(self, engine, prober=None, config=None):
        prober = prober or FakeProber(PortBinding(8080, 443))
        pipeline = ProxyPipeline(config or self.config, engine=engine, prober=prober)
        pipeline.configure()
        return pipeline

    def app(self, **proxy):
        return AppSpec(name="myapp", proxy=proxy or {"web": ["myapp.lndo.site"]})

    async def test_first_start_runs_full_pass(self):
        engine = FakeEngine(ports=docker_ports(8080, 443))
        pipeline = self.pipeline(engine)
        app = self.app()

        result = await pipeline.start_app(app)

        self.assertEqual(result.state, ProxyState.ABSENT)
        self.assertTrue(result.changed)
        self.assertEqual(result.binding, PortBinding(8080, 443))
        self.assertEqual(engine.count("start"), 1)
        self.assertTrue(pipeline.store.exists())
        self.assertEqual(app.compose_files, [result.artifact])

        document = yaml.safe_load(result.artifact.read_text(encoding="utf-8"))
        labels = document["services"]["web"]["labels"]
        self.assertEqual(labels["traefik.frontend.rule"], "HostRegexp:myapp.lndo.site")
        self.assertEqual(labels["traefik.docker.network"], "edgehostproxy_edge")

    async def test_launch_happens_after_definition_write(self):
        order = []
        store_path = ProxyRef.for_config(self.config).compose_file

        class RecordingEngine(FakeEngine):
            async def start(self, ref):
                order.append(("start", store_path.exists()))
                await super().start(ref)

        await self.pipeline(RecordingEngine(ports=docker_ports(8080, 443))).start_app(self.app())
        self.assertEqual(order, [("start", True)])

    async def test_running_proxy_keeps_live_ports(self):
        ref = ProxyRef.for_config(self.config)
        ref.compose_file.parent.mkdir(parents=True, exist_ok=True)
        ref.compose_file.write_text(
            yaml.safe_dump(build_definition(self.config, PortBinding(8000, 4433)), sort_keys=False),
            encoding="utf-8",
        )
        engine = FakeEngine(running=True, ports=docker_ports(8000, 4433))
        prober = FakeProber(PortBinding(80, 443))

        result = await self.pipeline(engine, prober).start_app(self.app())

        self.assertEqual(result.state, ProxyState.RUNNING_MATCHED)
        self.assertFalse(result.changed)
        self.assertEqual(result.binding, PortBinding(8000, 4433))
        self.assertEqual(prober.calls, 0)

    async def test_launch_exhaustion_aborts_app_start(self):
        engine = FakeEngine(start_failures=10)
        pipeline = self.pipeline(engine, config=ProxyConfig(config_dir=self.temp_dir, launch_attempts=2))
        app = self.app()

        with self.assertRaises(LaunchError) as ctx:
            await pipeline.start_app(app)

        self.assertEqual(ctx.exception.attempts, 2)
        self.assertEqual(app.compose_files, [])
        self.assertEqual(engine.count("destroy"), 2)

    async def test_conflicting_hosts_still_publish(self):
        engine = FakeEngine(ports=docker_ports(8080, 443))
        app = self.app(web=["myapp.lndo.site:8080"], api=["myapp.lndo.site:9090"])

        with self.assertLogs("edgehost.routes", level="ERROR"):
            result = await self.pipeline(engine).start_app(app)

        self.assertEqual(result.conflicts.counts["myapp.lndo.site"], 2)
        self.assertEqual([rule.service_name for rule in result.rules], ["web", "api"])
        document = yaml.safe_load(result.artifact.read_text(encoding="utf-8"))
        self.assertEqual(set(document["services"]), {"web", "api"})

    async def test_each_start_gets_a_fresh_artifact(self):
        engine = FakeEngine(ports=docker_ports(8080, 443))
        pipeline = self.pipeline(engine)

        first = await pipeline.start_app(self.app())
        second = await pipeline.start_app(self.app())

        self.assertNotEqual(first.artifact, second.artifact)
        self.assertTrue(first.artifact.exists())
        self.assertTrue(second.artifact.exists())

    async def test_concurrent_first_starts_define_proxy_once(self):
        engine = FakeEngine(ports=docker_ports(8080, 443))
        prober = FakeProber(PortBinding(8080, 443))
        pipeline = self.pipeline(engine, prober)

        one = AppSpec(name="one", proxy={"web": ["one.lndo.site"]})
        two = AppSpec(name="two", proxy={"web": ["two.lndo.site"]})
        results = await asyncio.gather(pipeline.start_app(one), pipeline.start_app(two))

        self.assertEqual(prober.calls, 1)
        self.assertEqual(sorted(r.state for r in results), sorted([ProxyState.ABSENT, ProxyState.RUNNING_MATCHED]))

    async def test_disabled_proxy_is_skipped(self):
        engine = FakeEngine()
        config = ProxyConfig(config_dir=self.temp_dir, enabled=False)

        self.assertIsNone(await self.pipeline(engine, config=config).start_app(self.app()))
        self.assertEqual(engine.calls, [])

    async def test_app_without_routes_is_skipped(self):
        engine = FakeEngine()
        app = AppSpec(name="myapp")

        self.assertIsNone(await self.pipeline(engine).start_app(app))
        self.assertEqual(engine.calls, [])

    async def test_app_info_reads_live_ports(self):
        engine = FakeEngine(running=True, ports=docker_ports(8080, 4433))
        pipeline = self.pipeline(engine)
        app = self.app()
        app.running = True

        urls = await pipeline.app_info(app)

        self.assertEqual(urls, {"web": ["http://myapp.lndo.site:8080", "https://myapp.lndo.site:4433"]})
        self.assertEqual(app.info["web"]["urls"], urls["web"])
        self.assertEqual([call[0] for call in engine.calls], ["scan"])
        self.assertFalse(pipeline.store.exists())

    async def test_app_info_for_stopped_app_is_empty(self):
        engine = FakeEngine(running=True, ports=docker_ports(80, 443))
        self.assertEqual(await self.pipeline(engine).app_info(self.app()), {})
        self.assertEqual(engine.calls, [])

    async def test_info_uses_engine_view_of_the_app(self):
        engine = FakeEngine(running=True, ports=docker_ports(80, 443), running_projects=("myapp",))
        pipeline = self.pipeline(engine)
        started, stopped = self.app(), AppSpec(name="other", proxy={"web": ["other.lndo.site"]})

        self.assertTrue(await pipeline.refresh_running(started))
        self.assertFalse(await pipeline.refresh_running(stopped))

        self.assertEqual(await pipeline.app_info(started), {"web": ["http://myapp.lndo.site", "https://myapp.lndo.site"]})
        self.assertEqual(await pipeline.app_info(stopped), {})
        self.assertEqual(stopped.info, {})

    async def test_poweroff_stops_defined_proxy(self):
        engine = FakeEngine(ports=docker_ports(8080, 443))
        pipeline = self.pipeline(engine)

        self.assertFalse(await pipeline.poweroff())
        await pipeline.start_app(self.app())
        self.assertTrue(await pipeline.poweroff())
        self.assertEqual(engine.count("stop"), 1)


if __name__ == "__main__":
    unittest.main()
