# --- GOVERNOR (DAO Governance - OpenZeppelin Governor) ---
# Only the entries the indexer needs: the quorum view and the lifecycle events.
GOVERNOR_ABI = [
    {
        "inputs": [{"internalType": "uint256", "name": "blockNumber", "type": "uint256"}],
        "name": "quorum",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"},
            {"indexed": False, "internalType": "address", "name": "proposer", "type": "address"},
            {"indexed": False, "internalType": "address[]", "name": "targets", "type": "address[]"},
            {"indexed": False, "internalType": "uint256[]", "name": "values", "type": "uint256[]"},
            {"indexed": False, "internalType": "string[]", "name": "signatures", "type": "string[]"},
            {"indexed": False, "internalType": "bytes[]", "name": "calldatas", "type": "bytes[]"},
            {"indexed": False, "internalType": "uint256", "name": "voteStart", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "voteEnd", "type": "uint256"},
            {"indexed": False, "internalType": "string", "name": "description", "type": "string"}
        ],
        "name": "ProposalCreated",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "voter", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"},
            {"indexed": False, "internalType": "uint8", "name": "support", "type": "uint8"},
            {"indexed": False, "internalType": "uint256", "name": "weight", "type": "uint256"},
            {"indexed": False, "internalType": "string", "name": "reason", "type": "string"}
        ],
        "name": "VoteCast",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "voter", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"},
            {"indexed": False, "internalType": "uint8", "name": "support", "type": "uint8"},
            {"indexed": False, "internalType": "uint256", "name": "weight", "type": "uint256"},
            {"indexed": False, "internalType": "string", "name": "reason", "type": "string"},
            {"indexed": False, "internalType": "bytes", "name": "params", "type": "bytes"}
        ],
        "name": "VoteCastWithParams",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"}
        ],
        "name": "ProposalCanceled",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"}
        ],
        "name": "ProposalExecuted",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "proposalId", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "etaSeconds", "type": "uint256"}
        ],
        "name": "ProposalQueued",
        "type": "event"
    }
]

GOVERNOR_EVENT_NAMES = [
    entry["name"] for entry in GOVERNOR_ABI if entry["type"] == "event"
]
