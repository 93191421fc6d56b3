import numpy as np
import pytest
import torch

from services import ClassifierSlot, PairClassifier, new_classifier


class TestPairClassifier:
    def test_forward_shape_and_range(self):
        model = PairClassifier(embed_dim=6, hidden_dims=(8, 4))
        out = model(torch.randn(5, 6), torch.randn(5, 6))
        assert out.shape == (5, 1)
        assert torch.all((out >= 0) & (out <= 1))

    def test_layer_widths(self):
        model = PairClassifier(embed_dim=6, hidden_dims=(8, 4))
        linears = [m for m in model.net if isinstance(m, torch.nn.Linear)]
        assert [(m.in_features, m.out_features) for m in linears] == [(12, 8), (8, 4), (4, 1)]

    def test_requires_two_hidden_widths(self):
        with pytest.raises(ValueError):
            PairClassifier(embed_dim=6, hidden_dims=(8,))

    def test_score_many_matches_score(self):
        model = new_classifier(6, (8, 4), seed=3)
        rng = np.random.default_rng(0)
        anchor = rng.normal(size=6).astype(np.float32)
        others = rng.normal(size=(4, 6)).astype(np.float32)
        batched = model.score_many(anchor, others)
        single = [model.score(anchor, row) for row in others]
        np.testing.assert_allclose(batched, single, rtol=1e-5, atol=1e-6)

    def test_score_many_empty(self):
        model = new_classifier(6, (8, 4), seed=3)
        assert model.score_many(np.zeros(6), np.zeros((0, 6))).shape == (0,)

    def test_accepts_read_only_arrays(self):
        model = new_classifier(6, (8, 4), seed=3)
        anchor = np.ones(6, dtype=np.float32)
        anchor.setflags(write=False)
        assert 0.0 <= model.score(anchor, anchor) <= 1.0


class TestNewClassifier:
    def test_same_seed_same_weights(self):
        a = new_classifier(6, (8, 4), seed=11)
        b = new_classifier(6, (8, 4), seed=11)
        for pa, pb in zip(a.parameters(), b.parameters()):
            assert torch.equal(pa, pb)

    def test_seed_leaves_global_rng_alone(self):
        torch.manual_seed(123)
        expected = torch.rand(3)
        torch.manual_seed(123)
        new_classifier(6, (8, 4), seed=5)
        assert torch.equal(torch.rand(3), expected)

    def test_starts_in_eval_mode(self):
        assert not new_classifier(6, (8, 4), seed=1).training


class TestClassifierSlot:
    def test_install_bumps_generation(self):
        first = new_classifier(6, (8, 4), seed=1)
        second = new_classifier(6, (8, 4), seed=2)
        slot = ClassifierSlot(first)
        assert slot.snapshot() == (0, first)

        assert slot.install(second) == 1
        assert slot.current is second
        assert slot.generation == 1

    def test_reader_keeps_its_instance(self):
        slot = ClassifierSlot(new_classifier(6, (8, 4), seed=1))
        held = slot.current
        slot.install(new_classifier(6, (8, 4), seed=2))
        assert held is not slot.current

    def test_install_puts_model_in_eval_mode(self):
        slot = ClassifierSlot(new_classifier(6, (8, 4), seed=1))
        model = new_classifier(6, (8, 4), seed=2)
        model.train()
        slot.install(model)
        assert not slot.current.training
