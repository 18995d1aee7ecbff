from typing import Dict, Optional

NAMED_CHAINS: Dict[int, str] = {
    1: "mainnet",
    5: "goerli",
    10: "optimism",
    56: "bsc",
    100: "gnosis",
    137: "polygon",
    8453: "base",
    17000: "holesky",
    42161: "arbitrum",
    560048: "hoodi",
    11155111: "sepolia",
}


def named_chain(chain_id: int) -> Optional[str]:
    return NAMED_CHAINS.get(chain_id)


__all__ = ["NAMED_CHAINS", "named_chain"]
