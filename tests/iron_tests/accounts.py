"""Development accounts of the public anvil/hardhat mnemonic."""

TEST_MNEMONIC = "test test test test test test test test test test test junk"
TEST_PATH = "m/44'/60'/0'/0"

# TEST_PATH/0 and TEST_PATH/1
ACCOUNT_0 = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ACCOUNT_1 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
ACCOUNT_0_KEY = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
