from typing import Any, Dict, List, Optional

from eth_abi.exceptions import DecodingError
from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.datastructures import AttributeDict
from web3.exceptions import LogTopicError, MismatchedABI

from abi.dao_governance_abi import GOVERNOR_ABI
from ingestion.governance.models.events import (
    AnyGovernorEvent,
    GovernorEventType,
    ProposalCanceledEvent,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    ProposalQueuedEvent,
    VoteCastEvent,
    VoteCastWithParamsEvent,
)
from utils.exceptions import GovernorLogDecodeError
from utils.formatter_utils import hex_to_dec, to_hex_string


class GovernorEventMapper(object):
    """Decodes raw eth_getLogs entries of a Governor contract into typed event models."""

    def __init__(self):
        self._contract = Web3().eth.contract(abi=GOVERNOR_ABI)
        self._event_names_by_topic: Dict[bytes, str] = {
            bytes(event_abi_to_log_topic(entry)): entry["name"]
            for entry in GOVERNOR_ABI
            if entry["type"] == "event"
        }

    @property
    def topics(self) -> List[str]:
        """topic0 of every supported event, for an eth_getLogs OR filter."""
        return [to_hex_string(topic) for topic in self._event_names_by_topic]

    def event_name_of(self, json_dict: Dict[str, Any]) -> Optional[str]:
        topics = json_dict.get("topics") or []
        if not topics:
            return None
        return self._event_names_by_topic.get(bytes(HexBytes(topics[0])))

    def json_dict_to_event(self, json_dict: Dict[str, Any], block_timestamp: int) -> AnyGovernorEvent:
        event_name = self.event_name_of(json_dict)
        if event_name is None:
            raise GovernorLogDecodeError(
                f"Log {json_dict.get('transactionHash')}:{json_dict.get('logIndex')} is not a Governor event"
            )

        try:
            decoded = getattr(self._contract.events, event_name)().process_log(self._to_web3_log(json_dict))
        except (MismatchedABI, LogTopicError, DecodingError, ValueError, TypeError) as e:
            raise GovernorLogDecodeError(f"Failed to decode {event_name} log: {e}") from e

        args = decoded["args"]
        meta = dict(
            governor_address=json_dict.get("address"),
            block_number=hex_to_dec(json_dict.get("blockNumber")),
            block_timestamp=block_timestamp,
            log_index=hex_to_dec(json_dict.get("logIndex")),
            transaction_hash=to_hex_string(json_dict.get("transactionHash")),
            proposal_id=args["proposalId"],
        )

        if event_name == GovernorEventType.PROPOSAL_CREATED.value:
            return ProposalCreatedEvent(
                **meta,
                proposer=args["proposer"],
                targets=list(args["targets"]),
                values=list(args["values"]),
                signatures=list(args["signatures"]),
                calldatas=[to_hex_string(calldata) for calldata in args["calldatas"]],
                vote_start=args["voteStart"],
                vote_end=args["voteEnd"],
                description=args["description"],
            )
        if event_name == GovernorEventType.VOTE_CAST.value:
            return VoteCastEvent(**meta, **self._vote_fields(args))
        if event_name == GovernorEventType.VOTE_CAST_WITH_PARAMS.value:
            return VoteCastWithParamsEvent(**meta, **self._vote_fields(args), params=to_hex_string(args["params"]))
        if event_name == GovernorEventType.PROPOSAL_CANCELED.value:
            return ProposalCanceledEvent(**meta)
        if event_name == GovernorEventType.PROPOSAL_EXECUTED.value:
            return ProposalExecutedEvent(**meta)
        if event_name == GovernorEventType.PROPOSAL_QUEUED.value:
            return ProposalQueuedEvent(**meta, eta_seconds=args["etaSeconds"])

        raise GovernorLogDecodeError(f"Unsupported Governor event {event_name}")

    @staticmethod
    def _vote_fields(args: Dict[str, Any]) -> Dict[str, Any]:
        return dict(
            voter=args["voter"],
            support=args["support"],
            weight=args["weight"],
            reason=args["reason"],
        )

    @staticmethod
    def _to_web3_log(json_dict: Dict[str, Any]) -> AttributeDict:
        # web3 expects the shape its own providers return: bytes topics/data and int positions
        return AttributeDict({
            "address": json_dict.get("address"),
            "topics": [HexBytes(topic) for topic in json_dict.get("topics", [])],
            "data": HexBytes(json_dict.get("data") or "0x"),
            "blockNumber": hex_to_dec(json_dict.get("blockNumber")),
            "blockHash": HexBytes(json_dict["blockHash"]) if json_dict.get("blockHash") else None,
            "transactionHash": HexBytes(json_dict["transactionHash"]) if json_dict.get("transactionHash") else None,
            "transactionIndex": hex_to_dec(json_dict.get("transactionIndex")),
            "logIndex": hex_to_dec(json_dict.get("logIndex")),
        })
