from __future__ import annotations

import io

import pytest

from fabric_ops.cli.commands import (
    ENROLL_MESSAGE,
    REENROLL_MESSAGE,
    build_channel_request,
    run_enroll,
    run_invoke,
    run_register,
    run_setup,
)
from fabric_ops.cli.config import CLIConfig
from fabric_ops.errors import SDKOperationError
from fabric_ops.profile import ConnectionProfile
from fabric_ops.sdk import (
    ACCEPT_ALL_POLICY,
    ChannelRequest,
    ChannelResponse,
    EndorsementResponse,
    IdentityRequest,
    InstallChaincodeRequest,
    InstantiateChaincodeRequest,
)
from fabric_ops.session import Session


def _session(sdk, *, orderer: str = "orderer0") -> Session:
    return Session(
        sdk=sdk,
        profile_path="connection-profile.yaml",
        profile=ConnectionProfile(path="connection-profile.yaml"),
        org="Org1",
        channel="mychannel",
        peer="peer0",
        username="Admin",
        orderer=orderer,
    )


def test_setup_runs_steps_in_order(fake_sdk) -> None:
    out = io.StringIO()
    run_setup(_session(fake_sdk), config=CLIConfig(), stdout=out)

    assert fake_sdk.operations() == [
        "membership",
        "get_signing_identity",
        "resource_manager",
        "save_channel",
        "join_channel",
        "package_chaincode",
        "install_chaincode",
        "instantiate_chaincode",
    ]
    calls = {call[0]: call[1:] for call in fake_sdk.calls}
    assert calls["get_signing_identity"] == ("Admin",)
    assert calls["resource_manager"] == ("Admin", "Org1")
    assert calls["save_channel"] == (
        "mychannel",
        "./channel/mychannel.tx",
        ["identity:Admin"],
        "orderer0",
    )
    assert calls["join_channel"] == ("mychannel", "orderer0", "peer0")
    assert calls["package_chaincode"] == ("example", "./chaincode/go")
    assert calls["install_chaincode"] == (
        InstallChaincodeRequest(name="example", path="example", version="v1", package=b"package-bytes"),
        "peer0",
    )
    assert calls["instantiate_chaincode"] == (
        "mychannel",
        InstantiateChaincodeRequest(name="example", path="example", version="v1", args=(), policy=ACCEPT_ALL_POLICY),
        "orderer0",
        "peer0",
    )
    assert out.getvalue() == (
        "Creating a channel... done.\n"
        "Joining the channel... done.\n"
        "Installing a chaincode... done.\n"
        "Instantiating a chaincode... done.\n"
    )


def test_setup_uses_configured_chaincode(fake_sdk) -> None:
    config = CLIConfig(
        channel_config_path="./artifacts/channel.tx",
        chaincode_name="sacc",
        chaincode_path="github.com/sacc",
        chaincode_version="v5",
        chaincode_source_root="/opt/gopath",
    )
    run_setup(_session(fake_sdk), config=config, stdout=io.StringIO())

    calls = {call[0]: call[1:] for call in fake_sdk.calls}
    assert calls["save_channel"][1] == "./artifacts/channel.tx"
    assert calls["package_chaincode"] == ("github.com/sacc", "/opt/gopath")
    assert calls["install_chaincode"][0].name == "sacc"
    assert calls["instantiate_chaincode"][1].version == "v5"


def test_setup_join_failure_propagates_and_stops(fake_sdk) -> None:
    fake_sdk.fail("join_channel", "peer0 refused to join")
    out = io.StringIO()

    with pytest.raises(SDKOperationError, match="peer0 refused to join"):
        run_setup(_session(fake_sdk), config=CLIConfig(), stdout=out)

    assert "install_chaincode" not in fake_sdk.operations()
    assert "instantiate_chaincode" not in fake_sdk.operations()
    assert out.getvalue() == "Creating a channel... done.\nJoining the channel..."


def test_setup_instantiate_failure_leaves_earlier_steps_done(fake_sdk) -> None:
    fake_sdk.fail("instantiate_chaincode", "endorsement policy failure")
    out = io.StringIO()

    with pytest.raises(SDKOperationError):
        run_setup(_session(fake_sdk), config=CLIConfig(), stdout=out)

    assert "install_chaincode" in fake_sdk.operations()
    assert out.getvalue().endswith("Installing a chaincode... done.\nInstantiating a chaincode...")


def test_register_enrolls_bootstrap_admin_then_creates_identity(fake_sdk) -> None:
    out = io.StringIO()
    run_register(_session(fake_sdk), "alice", config=CLIConfig(), stdout=out)

    assert fake_sdk.calls == [
        ("membership", "Org1"),
        ("enroll", "admin", "adminpw"),
        ("create_identity", IdentityRequest(id="alice", affiliation="Org1", type="client")),
    ]
    assert out.getvalue() == (
        "Creating a new user at CA server... done.\n\nName: alice\nSecret: s3cr3t\n"
    )


def test_register_bootstrap_failure_propagates_and_skips_identity_creation(fake_sdk) -> None:
    fake_sdk.fail("enroll", "authentication failure")

    with pytest.raises(SDKOperationError, match="authentication failure"):
        run_register(_session(fake_sdk), "alice", config=CLIConfig(), stdout=io.StringIO())

    assert "create_identity" not in fake_sdk.operations()


def test_register_uses_configured_bootstrap_credentials(fake_sdk) -> None:
    config = CLIConfig(bootstrap_admin="registrar", bootstrap_secret="registrarpw")
    run_register(_session(fake_sdk), "bob", config=config, stdout=io.StringIO())
    assert ("enroll", "registrar", "registrarpw") in fake_sdk.calls


@pytest.mark.parametrize(("reenroll", "message"), [(False, ENROLL_MESSAGE), (True, REENROLL_MESSAGE)])
def test_enroll_and_reenroll_share_one_call(fake_sdk, reenroll, message) -> None:
    out = io.StringIO()
    run_enroll(_session(fake_sdk), "alice", "pw", reenroll=reenroll, stdout=out)

    assert fake_sdk.calls == [("membership", "Org1"), ("enroll", "alice", "pw")]
    assert out.getvalue() == f"{message} done.\n"


def test_enroll_failure_propagates(fake_sdk) -> None:
    fake_sdk.fail("enroll", "invalid secret")
    out = io.StringIO()

    with pytest.raises(SDKOperationError, match="invalid secret"):
        run_enroll(_session(fake_sdk), "alice", "wrong", stdout=out)

    assert " done." not in out.getvalue()


def test_build_channel_request_encodes_arguments() -> None:
    request = build_channel_request("example", "transfer", ["A", "B", "10"])
    assert request == ChannelRequest(chaincode_id="example", fcn="transfer", args=(b"A", b"B", b"10"))


def test_execute_submits_to_resolved_peer(fake_sdk) -> None:
    out = io.StringIO()
    run_invoke(
        _session(fake_sdk),
        "transfer",
        ["A", "B", "10"],
        query=False,
        config=CLIConfig(),
        stdout=out,
    )

    assert fake_sdk.calls == [
        ("channel_client", "mychannel", "Admin", "Org1"),
        (
            "execute",
            ChannelRequest(chaincode_id="example", fcn="transfer", args=(b"A", b"B", b"10")),
            ["peer0"],
            "orderer0",
        ),
    ]
    assert out.getvalue() == (
        "Sending a signed transaction proposal with the certificate of Admin...\n"
        "Success\nReturned payload: 90\n"
    )


def test_query_prints_payload_on_success(fake_sdk) -> None:
    fake_sdk.response = ChannelResponse(
        transaction_id="tx-2",
        responses=(EndorsementResponse(status=200, payload=b"balance=100"),),
    )
    out = io.StringIO()
    run_invoke(_session(fake_sdk), "query", ["A"], query=True, config=CLIConfig(), stdout=out)

    assert fake_sdk.operations() == ["channel_client", "query"]
    assert fake_sdk.calls[1][2] == ["peer0"]
    assert "Returned payload: balance=100" in out.getvalue()


def test_query_prints_raw_response_on_other_status(fake_sdk) -> None:
    response = EndorsementResponse(status=500, payload=b"", message="chaincode error")
    fake_sdk.response = ChannelResponse(transaction_id="tx-3", responses=(response,))
    out = io.StringIO()
    run_invoke(_session(fake_sdk), "query", ["A"], query=True, config=CLIConfig(), stdout=out)

    assert "Success" not in out.getvalue()
    assert str(response) in out.getvalue()
    assert "status:500" in out.getvalue()
    assert "chaincode error" in out.getvalue()


def test_invoke_without_responses_is_an_error(fake_sdk) -> None:
    fake_sdk.response = ChannelResponse(transaction_id="tx-4", responses=())
    with pytest.raises(SDKOperationError, match="no endorsement responses"):
        run_invoke(_session(fake_sdk), "query", [], query=True, config=CLIConfig(), stdout=io.StringIO())


def test_invoke_propagates_transport_errors(fake_sdk) -> None:
    fake_sdk.fail("execute", "connection refused")
    with pytest.raises(SDKOperationError, match="connection refused"):
        run_invoke(_session(fake_sdk), "move", ["A"], query=False, config=CLIConfig(), stdout=io.StringIO())
