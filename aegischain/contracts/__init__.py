"""Token, NFT and bridge contract logic run against an in-memory contract host."""