# =========================================================================== #
import httpx
import pytest

# --------------------------------------------------------------------------- #
from sandbox_pulumi import util


def test_create_labels():
    labels = util.create_labels(
        tier=util.LabelTier.base,
        component=util.LabelComponent.node_pool,
        from_="pulumi",
    )
    assert labels == {
        "sandbox-tier": "base",
        "sandbox-component": "node-pool",
        "sandbox-from": "pulumi",
    }

    with pytest.raises(ValueError):
        util.create_labels(
            tier=util.LabelTier.base,
            component=util.LabelComponent.cluster,
            from_="pulumi",
            Owner="Not Lowercase",
        )


def test_check():
    request = httpx.Request("GET", "http://sandbox.test/")

    data, err = util.check(httpx.Response(200, json={"ok": True}, request=request))
    assert data == {"ok": True}
    assert err is None

    data, err = util.check(httpx.Response(503, text="warming up", request=request))
    assert data == "warming up"
    assert isinstance(err, AssertionError)
    assert "`200`, got `503`" in str(err)

    # NOTE: HTML pages need not be UTF-8.
    res = httpx.Response(200, content=b"<html>caf\xe9</html>", request=request)
    data, err = util.check(res)
    assert err is None
    assert data.startswith("<html>caf")


def test_params():
    assert util.params(a=1, b=None, c="") == dict(a=1, c="")
