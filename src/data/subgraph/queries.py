"""GraphQL documents for the EigenLayer restaking subgraph."""

RESTAKERS_QUERY = """
query GetRestakers($first: Int!, $skip: Int!) {
  delegations(
    first: $first
    skip: $skip
    orderBy: createdAt
    orderDirection: desc
  ) {
    id
    delegator {
      id
    }
    operator {
      id
      metadataURI
    }
    shares
    createdAt
    transactionHash
    blockNumber
  }
  stakers(
    first: $first
    skip: $skip
    orderBy: createdAt
    orderDirection: desc
  ) {
    id
    shares
    strategies {
      id
      token {
        id
        name
        symbol
      }
    }
    deposits {
      id
      shares
      strategy {
        id
      }
      transactionHash
      blockNumber
      createdAt
    }
  }
}
"""
"""Delegation events and staker deposits (query A)"""

OPERATORS_QUERY = """
query GetOperators($first: Int!, $skip: Int!) {
  operators(
    first: $first
    skip: $skip
    orderBy: createdAt
    orderDirection: desc
  ) {
    id
    metadataURI
    delegatedShares
    operatorShares
    totalShares
    createdAt
    blockNumber
    transactionHash
  }
  slashings(
    first: $first
    skip: $skip
    orderBy: createdAt
    orderDirection: desc
  ) {
    id
    operator {
      id
    }
    amount
    createdAt
    transactionHash
    blockNumber
  }
}
"""
"""Operators and slashing events (query B)"""

RESTAKERS_RESULT_KEYS = ("delegations", "stakers")
"""Result sets returned by RESTAKERS_QUERY"""

OPERATORS_RESULT_KEYS = ("operators", "slashings")
"""Result sets returned by OPERATORS_QUERY"""


__all__ = [
    "OPERATORS_QUERY",
    "OPERATORS_RESULT_KEYS",
    "RESTAKERS_QUERY",
    "RESTAKERS_RESULT_KEYS",
]
