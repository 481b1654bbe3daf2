# -- Configuration Tests -- #

'''
SimulationConfig validation, JSON loading and scenario builders.

Sean Bowman [10/17/2026]
'''

import json
from pathlib import Path

import numpy as np
import pytest

from ParticleFluids.scenarios.damBreak import (
    DamBreakConfig,
    SphereDropConfig,
    createDamBreak,
    createSphereDrop,
)
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.sph.protocols import (
    ConfigurationError,
    SimulationConfig,
    isPowerOfTwo,
    nextPowerOfTwo,
)

CONFIG_DIR = Path(__file__).parents[2] / 'configs'


def testDefaultsAreValid():
    SimulationConfig().validate()


@pytest.mark.parametrize('changes', [
    {'particleCount': 0},
    {'smoothingRadius': 0.0},
    {'particleMass': -1.0},
    {'restDensity': 0.0},
    {'timeStep': 0.0},
    {'boundaryDamping': 1.5},
    {'boundaryDamping': -0.1},
    {'viscosity': -1.0},
    {'constraintEpsilon': -1.0},
    {'solverMode': 'flip'},
    {'neighborStrategy': 'octree'},
    {'backend': 'cuda'},
    {'spawnPattern': 'hexagonal'},
    {'workGroupSize': 0},
    {'maxWorkers': 0},
    {'spawnSpacing': 0.0},
    {'domainMin': (0.0, 0.0, 0.0), 'domainMax': (0.0, 1.0, 1.0)},
    {'gravity': (0.0, float('nan'), 0.0)},
    {'domainMin': (0.0, 0.0)},
    {'spawnMin': (1.0, 1.0, 1.0), 'spawnMax': (0.0, 0.0, 0.0)},
    {'particleCount': 3000, 'padSortBuffer': False},
    {'sphereCenter': (0.0, 0.0, 0.0), 'sphereRadius': -1.0},
])
def testValidationRejects(changes):
    with pytest.raises(ConfigurationError):
        SimulationConfig(**changes).validate()


def testUnpaddedPowerOfTwoAccepted():
    SimulationConfig(particleCount=4096, padSortBuffer=False).validate()
    SimulationConfig(particleCount=3000, padSortBuffer=False, neighborStrategy='spatialHash').validate()


def testConfigurationErrorIsValueError():
    assert issubclass(ConfigurationError, ValueError)


def testPowerOfTwoHelpers():
    assert isPowerOfTwo(1) and isPowerOfTwo(1024)
    assert not isPowerOfTwo(0) and not isPowerOfTwo(3000)
    assert nextPowerOfTwo(3000) == 4096
    assert nextPowerOfTwo(1) == 2
    assert SimulationConfig(particleCount=3000).sortBufferSize == 4096
    assert SimulationConfig(particleCount=2048).sortBufferSize == 2048


def testResolvedSpawnSpacing():
    config = SimulationConfig(particleMass=0.008, restDensity=1000.0)
    assert config.resolvedSpawnSpacing == pytest.approx(0.02)
    assert config.replace(spawnSpacing=0.05).resolvedSpawnSpacing == 0.05


def testReplaceReturnsCopy():
    config = SimulationConfig()
    changed = config.replace(viscosity=1.0)
    assert changed.viscosity == 1.0
    assert config.viscosity != 1.0


def testToDictIsJsonSerializable():
    config = SimulationConfig(sphereCenter=(0.0, 0.1, 0.0), sphereRadius=0.05)
    data = config.toDict()
    json.dumps(data)
    assert data['domainMin'] == [-0.3, 0.0, -0.3]
    assert data['sphereCenter'] == [0.0, 0.1, 0.0]


def testLoadSphConfig():
    config = SimulationConfig.fromJson(str(CONFIG_DIR / 'damBreak_sph.json'))
    config.validate()
    assert config.solverMode == 'sph'
    assert config.particleCount == 2048
    np.testing.assert_allclose(config.spawnMax, [0.0, 0.58, 0.28])
    assert not config.hasSphereCollider


def testLoadPbfConfigWithExtents():
    config = SimulationConfig.fromJson(str(CONFIG_DIR / 'damBreak_pbf.json'))
    config.validate()
    assert config.solverMode == 'pbf'
    assert config.backend == 'threaded'
    assert config.tensileK == pytest.approx(1e-4)
    np.testing.assert_allclose(config.domainMin, [-0.3, -0.3, -0.3])
    np.testing.assert_allclose(config.domainMax, [0.3, 0.3, 0.3])
    assert config.hasSphereCollider
    assert config.sortBufferSize == 4096


@pytest.mark.parametrize('name', ['damBreak_sph.json', 'damBreak_pbf.json'])
def testShippedConfigsSpawn(name):
    config = SimulationConfig.fromJson(str(CONFIG_DIR / name))
    particles = ParticleSystem.fromConfig(config)
    assert particles.nParticles == config.particleCount


def testUnknownKeysIgnored(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'simulation': {'particleCount': 128, 'colour': 'blue'},
        'renderer': {'pointSize': 3},
    }))
    config = SimulationConfig.fromJson(str(path))
    assert config.particleCount == 128
    assert config.solverMode == 'sph'


def testMissingConfigFile(tmp_path):
    with pytest.raises(FileNotFoundError):
        SimulationConfig.fromJson(str(tmp_path / 'missing.json'))


@pytest.mark.parametrize('preset', [DamBreakConfig.small, DamBreakConfig.standard])
def testDamBreakPresetFits(preset):
    scenario = preset()
    config = createDamBreak(scenario)
    config.validate()
    particles = ParticleSystem.fromConfig(config)

    assert particles.nParticles == scenario.particleCount
    assert np.all(particles.positions[:, 0] <= config.spawnMax[0] + 1e-6)


@pytest.mark.parametrize('preset', [SphereDropConfig.small, SphereDropConfig.standard])
def testSphereDropPresetFits(preset):
    scenario = preset()
    config = createSphereDrop(scenario)
    config.validate()
    assert config.hasSphereCollider
    assert config.solverMode == 'pbf'

    particles = ParticleSystem.fromConfig(config)
    assert particles.nParticles == scenario.particleCount

    # The block starts above the sphere
    sphereTop = config.sphereCenter[1] + config.sphereRadius
    assert np.all(particles.positions[:, 1] > sphereTop)
